"""
Test suite for POS module
Tests: orders, totals with discount, sales invoice listing
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from etims_pos.core.models import AuditLog
from etims_pos.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from etims_pos.pos.models import Order


class OrderModelTests(TestCase):
    """Test Order model methods"""

    def test_totals(self):
        burger = TestDataFactory.create_recipe(price=Decimal('580.00'))
        juice = TestDataFactory.create_recipe(price=Decimal('150.00'))
        order = TestDataFactory.create_order(discount_amount=Decimal('30.00'),
                                             items=[(burger, Decimal('1')), (juice, Decimal('2'))])
        self.assertEqual(order.get_subtotal(), Decimal('880.00'))
        self.assertEqual(order.get_total(), Decimal('850.00'))

    def test_total_never_negative(self):
        juice = TestDataFactory.create_recipe(price=Decimal('150.00'))
        order = TestDataFactory.create_order(discount_amount=Decimal('500.00'), items=[(juice, Decimal('1'))])
        self.assertEqual(order.get_total(), Decimal('0.00'))


class OrderAPITests(TestCase):
    """Test Order API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.recipe = TestDataFactory.create_recipe(price=Decimal('580.00'))

    def test_create_order_snapshots_recipe(self):
        data = {'table_number': 'T4', 'items': [{'recipe': self.recipe.id, 'quantity': '2'}]}
        response = self.client.post('/api/v1/orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['order_number'].startswith('ORD-'))
        self.assertEqual(Decimal(response.data['total']), Decimal('1160.00'))
        self.assertIsNone(response.data['kra_status'])

        self.recipe.price = Decimal('600.00')
        self.recipe.save()
        order = Order.objects.get(id=response.data['id'])
        self.assertEqual(order.items.get().unit_price, Decimal('580.00'))
        self.assertTrue(AuditLog.objects.filter(action='order_create').exists())

    def test_create_order_without_items(self):
        response = self.client.post('/api/v1/orders/', {'table_number': 'T1', 'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_with_inactive_recipe(self):
        self.recipe.is_active = False
        self.recipe.save()
        data = {'items': [{'recipe': self.recipe.id, 'quantity': '1'}]}
        response = self.client.post('/api/v1/orders/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Order.objects.count(), 0)

    def test_list_orders_paginated(self):
        for _ in range(3):
            TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('1'))])
        response = self.client.get('/api/v1/orders/?limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_pages'], 2)

    def test_list_orders_invalid_page(self):
        response = self.client.get('/api/v1/orders/?page=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invoiced_order_cannot_be_deleted(self):
        order = TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('1'))])
        TestDataFactory.create_sales_invoice(order, invc_no=1)
        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invoiced_order_discount_locked(self):
        order = TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('1'))])
        TestDataFactory.create_sales_invoice(order, invc_no=1)
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'discount_amount': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_status(self):
        order = TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('1'))])
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'served'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'served')


class SalesInvoiceAPITests(TestCase):
    """Test Sales Invoice API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        recipe = TestDataFactory.create_recipe(price=Decimal('580.00'))
        self.order = TestDataFactory.create_order(user=self.user, items=[(recipe, Decimal('1'))])

    def test_list_filtered_by_status(self):
        TestDataFactory.create_sales_invoice(self.order, invc_no=1, kra_status='error')
        TestDataFactory.create_sales_invoice(self.order, invc_no=2, kra_status='ok')
        response = self.client.get('/api/v1/sales-invoices/?kra_status=ok')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['invc_no'], 2)

    def test_detail(self):
        invoice = TestDataFactory.create_sales_invoice(self.order, invc_no=7)
        response = self.client.get(f'/api/v1/sales-invoices/{invoice.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_number'], self.order.order_number)
        self.assertIsNone(response.data['original_invc_no'])
