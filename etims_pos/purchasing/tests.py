"""
Test suite for Purchasing module
Tests: purchase creation, updates, stock receipt and KRA lock
"""
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from etims_pos.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from etims_pos.purchasing.models import Purchase


class PurchaseModelTests(TestCase):
    """Test Purchase and PurchaseItem model methods"""

    def test_purchase_str_without_number(self):
        purchase = TestDataFactory.create_purchase()
        self.assertIn("Purchase-", str(purchase))

    def test_purchase_totals(self):
        purchase = TestDataFactory.create_purchase(total_tax_amount=Decimal('200.00'))
        TestDataFactory.create_purchase_item(purchase, quantity=Decimal('10'), unit_price=Decimal('100.00'))
        TestDataFactory.create_purchase_item(purchase, quantity=Decimal('5'), unit_price=Decimal('50.00'))
        self.assertEqual(purchase.get_subtotal(), Decimal('1250.00'))
        self.assertEqual(purchase.get_total(), Decimal('1450.00'))


class PurchaseAPITests(TestCase):
    """Test Purchase API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier()
        self.ingredient = TestDataFactory.create_ingredient()

    def purchase_data(self, **overrides):
        data = {
            'supplier': self.supplier.id,
            'supplier_invoice_no': 5521,
            'purchase_date': timezone.now().date().isoformat(),
            'total_tax_amount': '160.00',
            'items': [{'ingredient': self.ingredient.id, 'quantity': '10', 'unit_price': '100.00'}],
        }
        data.update(overrides)
        return data

    def test_create_purchase_receives_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['purchase_number'].startswith('PUR-'))
        self.assertEqual(len(response.data['items']), 1)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('10.000'))

    def test_draft_purchase_keeps_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(status='draft'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('0.000'))

    def test_create_purchase_invalid_quantity(self):
        data = self.purchase_data(items=[{'ingredient': self.ingredient.id, 'quantity': '0', 'unit_price': '1'}])
        response = self.client.post('/api/v1/purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Purchase.objects.count(), 0)

    def test_list_purchases_filtered(self):
        TestDataFactory.create_purchase(user=self.user, supplier=self.supplier)
        other = TestDataFactory.create_purchase(user=self.user)
        other.kra_status = 'ok'
        other.save()
        response = self.client.get('/api/v1/purchases/?kra_status=pending')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/purchases/?supplier={self.supplier.id}')
        self.assertEqual(response.data['count'], 1)

    def test_replace_items_adjusts_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(), format='json')
        purchase_id = response.data['id']
        response = self.client.patch(f'/api/v1/purchases/{purchase_id}/', {
            'items': [{'ingredient': self.ingredient.id, 'quantity': '4', 'unit_price': '100.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('4.000'))

    def test_submitted_purchase_is_locked(self):
        purchase = TestDataFactory.create_purchase(user=self.user)
        purchase.kra_status = 'ok'
        purchase.save()
        response = self.client.patch(f'/api/v1/purchases/{purchase.id}/', {'notes': 'late edit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.delete(f'/api/v1/purchases/{purchase.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_purchase_reverses_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(), format='json')
        response = self.client.delete(f"/api/v1/purchases/{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('0.000'))

    def test_finalizing_draft_receives_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(status='draft'), format='json')
        response = self.client.patch(f"/api/v1/purchases/{response.data['id']}/", {'status': 'finalized'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('10.000'))

    def test_cancelling_finalized_purchase_reverses_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(), format='json')
        purchase_id = response.data['id']
        response = self.client.patch(f'/api/v1/purchases/{purchase_id}/', {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('0.000'))

    def test_notes_edit_keeps_stock(self):
        response = self.client.post('/api/v1/purchases/', self.purchase_data(), format='json')
        response = self.client.patch(f"/api/v1/purchases/{response.data['id']}/", {'notes': 'checked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.ingredient.refresh_from_db()
        self.assertEqual(self.ingredient.current_stock, Decimal('10.000'))
