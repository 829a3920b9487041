"""
Test suite for Catalog module
Tests: ingredients, recipes with nested components, KRA code protection
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from etims_pos.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from etims_pos.catalog.models import Ingredient, Recipe


class RecipeModelTests(TestCase):
    """Test Recipe model methods"""

    def test_recipe_cost(self):
        flour = TestDataFactory.create_ingredient(cost_per_unit=Decimal('120.00'))
        oil = TestDataFactory.create_ingredient(cost_per_unit=Decimal('300.00'))
        recipe = TestDataFactory.create_recipe(components=[(flour, Decimal('0.250')), (oil, Decimal('0.050'))])
        self.assertEqual(recipe.get_cost(), Decimal('45.00'))

    def test_is_kra_registered(self):
        self.assertFalse(TestDataFactory.create_recipe().is_kra_registered)
        self.assertTrue(TestDataFactory.create_recipe(item_cd='KE2NTBA0000001').is_kra_registered)


class IngredientAPITests(TestCase):
    """Test Ingredient API endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())

    def test_create_ingredient_ignores_kra_codes(self):
        data = {'name': 'Maize Flour', 'unit': 'kg', 'cost_per_unit': '120.00', 'item_cd': 'KE2NTBA9999999'}
        response = self.client.post('/api/v1/ingredients/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['item_cd'])
        self.assertEqual(response.data['kra_status'], 'pending')

    def test_negative_cost_rejected(self):
        response = self.client.post('/api/v1/ingredients/', {'name': 'Salt', 'cost_per_unit': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_by_kra_status(self):
        TestDataFactory.create_ingredient(item_cd='KE2NTBA0000001')
        TestDataFactory.create_ingredient()
        response = self.client.get('/api/v1/ingredients/?kra_status=ok')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_delete_ingredient_used_by_recipe(self):
        flour = TestDataFactory.create_ingredient()
        TestDataFactory.create_recipe(components=[(flour, Decimal('0.2'))])
        response = self.client.delete(f'/api/v1/ingredients/{flour.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Ingredient.objects.filter(id=flour.id).exists())


class RecipeAPITests(TestCase):
    """Test Recipe API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.flour = TestDataFactory.create_ingredient()
        self.oil = TestDataFactory.create_ingredient()

    def test_create_recipe_with_components(self):
        data = {
            'name': 'Chapati',
            'price': '50.00',
            'category': 'Food',
            'components': [
                {'ingredient': self.flour.id, 'quantity': '0.100'},
                {'ingredient': self.oil.id, 'quantity': '0.010'},
            ]
        }
        response = self.client.post('/api/v1/recipes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['components']), 2)
        self.assertEqual(Recipe.objects.get(name='Chapati').components.count(), 2)

    def test_duplicate_component_rejected(self):
        data = {
            'name': 'Double Flour',
            'price': '50.00',
            'components': [
                {'ingredient': self.flour.id, 'quantity': '0.1'},
                {'ingredient': self.flour.id, 'quantity': '0.2'},
            ]
        }
        response = self.client.post('/api/v1/recipes/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_zero_price_rejected(self):
        response = self.client.post('/api/v1/recipes/', {'name': 'Free Lunch', 'price': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_replacing_components_resets_composition_status(self):
        recipe = TestDataFactory.create_recipe(item_cd='KE2NTBA0000001', components=[(self.flour, Decimal('0.1'))])
        recipe.kra_composition_status = 'ok'
        recipe.save()
        response = self.client.patch(f'/api/v1/recipes/{recipe.id}/', {
            'components': [{'ingredient': self.oil.id, 'quantity': '0.02'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['kra_composition_status'], 'pending')
        self.assertEqual([c['ingredient'] for c in response.data['components']], [self.oil.id])

    def test_delete_ordered_recipe_deactivates(self):
        recipe = TestDataFactory.create_recipe()
        TestDataFactory.create_order(user=self.user, items=[(recipe, Decimal('1'))])
        response = self.client.delete(f'/api/v1/recipes/{recipe.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        recipe.refresh_from_db()
        self.assertFalse(recipe.is_active)
