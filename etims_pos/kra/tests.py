"""
Test suite for the KRA eTIMS module
Tests: sequences, code tables, payload builders, client, credentials and the submission endpoints
"""
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch

import requests
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status

from etims_pos.core.models import AuditLog
from etims_pos.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from etims_pos.pos.models import SalesInvoice
from .client import EtimsClient, EtimsRequestError, is_success
from .codes import (
    map_category_code, map_payment_type, map_unit_code, normalize_tax_type, stock_movement_code, tax_rate,
)
from .credentials import DEVICE_HEADERS_CACHE_KEY, DeviceNotInitialized, get_device_headers
from .models import DeviceCredential, KraTransaction, SequenceCounter
from .payloads import (
    allocate_tax, build_purchase_payload, build_refund_payload, build_sale_lines, build_stock_lines,
)
from .sequences import (
    SALES_INVOICE, allocate_next_number, next_item_code, next_sales_invoice_number, sync_sequences,
)
from .services import SubmissionError, is_duplicate_invoice_error, refund_multiplier

HEADERS = {'tin': 'P051234567X', 'bhfId': '00', 'cmcKey': 'test-cmc-key'}


def kra_response(result_cd='000', result_msg='It is succeeded', data=None):
    """Mock of a requests.Response carrying an eTIMS JSON body"""
    response = Mock()
    response.status_code = 200
    response.raise_for_status.return_value = None
    response.json.return_value = {'resultCd': result_cd, 'resultMsg': result_msg, 'data': data}
    return response


class SequenceTests(TestCase):
    """Test number allocation"""

    def test_first_number_is_one(self):
        self.assertEqual(allocate_next_number('test_sequence'), 1)

    def test_consecutive_numbers(self):
        self.assertEqual(allocate_next_number('test_sequence'), 1)
        self.assertEqual(allocate_next_number('test_sequence'), 2)
        self.assertEqual(SequenceCounter.objects.get(name='test_sequence').last_value, 2)

    def test_never_below_table_maximum(self):
        """Existing invoice 41 means the next sale is 42, then 43"""
        order = TestDataFactory.create_order()
        TestDataFactory.create_sales_invoice(order, invc_no=41)
        self.assertEqual(next_sales_invoice_number(), 42)
        self.assertEqual(next_sales_invoice_number(), 43)

    def test_floor(self):
        self.assertEqual(allocate_next_number('test_sequence', floor=9), 10)

    def test_item_code_format(self):
        TestDataFactory.create_ingredient(item_cd='KE2NTBA0000007')
        self.assertEqual(next_item_code(), 'KE2NTBA0000008')

    def test_sync_never_moves_counter_down(self):
        """A counter ahead of its table keeps its value; burned numbers stay burned"""
        SequenceCounter.objects.create(name=SALES_INVOICE, last_value=99)
        order = TestDataFactory.create_order()
        TestDataFactory.create_sales_invoice(order, invc_no=12)
        results = sync_sequences([SALES_INVOICE])
        self.assertEqual(results[SALES_INVOICE], (99, 99))
        self.assertEqual(next_sales_invoice_number(), 100)

    def test_sync_raises_counter_to_table_maximum(self):
        SequenceCounter.objects.create(name=SALES_INVOICE, last_value=3)
        order = TestDataFactory.create_order()
        TestDataFactory.create_sales_invoice(order, invc_no=12)
        results = sync_sequences([SALES_INVOICE])
        self.assertEqual(results[SALES_INVOICE], (3, 12))
        self.assertEqual(SequenceCounter.objects.get(name=SALES_INVOICE).last_value, 12)

    def test_sync_with_force_moves_counter_down(self):
        SequenceCounter.objects.create(name=SALES_INVOICE, last_value=99)
        order = TestDataFactory.create_order()
        TestDataFactory.create_sales_invoice(order, invc_no=12)
        results = sync_sequences([SALES_INVOICE], force=True)
        self.assertEqual(results[SALES_INVOICE], (99, 12))

    def test_item_codes_not_reissued_after_sync(self):
        """Codes consumed by failed registrations are not handed out again"""
        first = next_item_code()
        second = next_item_code()
        sync_sequences()
        third = next_item_code()
        self.assertEqual(len({first, second, third}), 3)
        self.assertEqual(third, 'KE2NTBA0000003')

    def test_allocator_never_repeats(self):
        order = TestDataFactory.create_order()
        TestDataFactory.create_sales_invoice(order, invc_no=5)
        numbers = [next_sales_invoice_number() for _ in range(20)]
        self.assertEqual(len(set(numbers)), 20)
        self.assertEqual(numbers, list(range(6, 26)))

    def test_sync_command_dry_run(self):
        SequenceCounter.objects.create(name=SALES_INVOICE, last_value=5)
        out = StringIO()
        call_command('sync_kra_sequences', '--dry-run', '--force', '--sequence', SALES_INVOICE, stdout=out)
        self.assertIn('would change 5 -> 0', out.getvalue())
        self.assertEqual(SequenceCounter.objects.get(name=SALES_INVOICE).last_value, 5)

    def test_sync_command_keeps_counter_without_force(self):
        SequenceCounter.objects.create(name=SALES_INVOICE, last_value=5)
        out = StringIO()
        call_command('sync_kra_sequences', '--sequence', SALES_INVOICE, stdout=out)
        self.assertIn('All sequences already in sync', out.getvalue())
        self.assertEqual(SequenceCounter.objects.get(name=SALES_INVOICE).last_value, 5)


class CodeTableTests(TestCase):
    """Test free-form value to eTIMS code translation"""

    def test_unit_codes(self):
        self.assertEqual(map_unit_code('Kg'), 'KG')
        self.assertEqual(map_unit_code(' litre '), 'L')
        self.assertEqual(map_unit_code('crate'), 'U')
        self.assertEqual(map_unit_code(None), 'U')

    def test_category_codes(self):
        self.assertEqual(map_category_code('Drinks'), '50200000')
        self.assertEqual(map_category_code('meats'), '73131600')
        self.assertEqual(map_category_code('unknown'), '5059690800')

    def test_payment_codes(self):
        self.assertEqual(map_payment_type('mpesa'), '06')
        self.assertEqual(map_payment_type('CARD'), '05')
        self.assertEqual(map_payment_type('03'), '03')
        self.assertEqual(map_payment_type('barter'), '01')

    def test_tax_types(self):
        self.assertEqual(normalize_tax_type('e'), 'E')
        self.assertEqual(normalize_tax_type('Z'), 'B')
        self.assertEqual(tax_rate('B'), Decimal('16'))
        self.assertEqual(tax_rate('A'), Decimal('0'))

    def test_stock_movement_codes(self):
        self.assertEqual(stock_movement_code(Decimal('5'), 'purchase'), '02')
        self.assertEqual(stock_movement_code(Decimal('5')), '04')
        self.assertEqual(stock_movement_code(Decimal('-2'), 'discarding'), '15')
        self.assertEqual(stock_movement_code(Decimal('-2'), 'mystery'), '13')


class PayloadTests(TestCase):
    """Test eTIMS body builders"""

    def test_allocate_tax_proportionally(self):
        self.assertEqual(allocate_tax([100, 300], 400, 40), [Decimal('10.00'), Decimal('30.00')])

    def test_allocate_tax_zero_total(self):
        self.assertEqual(allocate_tax([0, 0], 0, 40), [Decimal('0.00'), Decimal('0.00')])

    def test_sale_line_extracts_inclusive_tax(self):
        recipe = TestDataFactory.create_recipe(price=Decimal('580.00'), item_cd='KE2NTBA0000001')
        order = TestDataFactory.create_order(items=[(recipe, Decimal('1'))])
        [line] = build_sale_lines(list(order.items.all()))
        self.assertEqual(line['totAmt'], 580.0)
        self.assertEqual(line['taxblAmt'], 500.0)
        self.assertEqual(line['taxAmt'], 80.0)
        self.assertEqual(line['itemCd'], 'KE2NTBA0000001')

    def test_sale_lines_spread_discount(self):
        """An 87.00 discount on 580 + 290 is split 58 / 29 before tax is extracted"""
        burger = TestDataFactory.create_recipe(price=Decimal('580.00'), item_cd='KE2NTBA0000001')
        juice = TestDataFactory.create_recipe(price=Decimal('290.00'), item_cd='KE2NTBA0000002')
        order = TestDataFactory.create_order(items=[(burger, Decimal('1')), (juice, Decimal('1'))])
        lines = build_sale_lines(list(order.items.all()), Decimal('87.00'))
        self.assertEqual([line['dcAmt'] for line in lines], [58.0, 29.0])
        self.assertEqual([line['totAmt'] for line in lines], [522.0, 261.0])
        self.assertEqual([line['taxblAmt'] for line in lines], [450.0, 225.0])
        self.assertEqual([line['taxAmt'] for line in lines], [72.0, 36.0])

    def test_purchase_payload_allocates_bill_tax(self):
        purchase = TestDataFactory.create_purchase(supplier_invoice_no=5521, total_tax_amount=Decimal('200.00'))
        TestDataFactory.create_purchase_item(purchase, quantity=Decimal('10'), unit_price=Decimal('100.00'))
        TestDataFactory.create_purchase_item(purchase, quantity=Decimal('5'), unit_price=Decimal('50.00'))

        payload = build_purchase_payload(purchase, 7, HEADERS)
        self.assertEqual(payload['invcNo'], 7)
        self.assertEqual(payload['spplrInvcNo'], 5521)
        self.assertEqual(payload['rcptTyCd'], 'P')
        self.assertEqual([line['taxAmt'] for line in payload['itemList']], [160.0, 40.0])
        self.assertEqual(payload['totTaxblAmt'], 1250.0)
        self.assertEqual(payload['totTaxAmt'], 200.0)
        self.assertEqual(payload['totAmt'], 1450.0)
        self.assertEqual(payload['taxblAmtB'], 1250.0)
        self.assertEqual(payload['totItemCnt'], 2)

    def test_refund_payload_negates_and_scales(self):
        original = {
            'invcNo': 41,
            'trdInvcNo': 'ORD-1',
            'totTaxblAmt': 500.0,
            'totTaxAmt': 80.0,
            'totAmt': 580.0,
            'receipt': {'custTin': None},
            'itemList': [{
                'itemSeq': 1, 'taxTyCd': 'B', 'qty': 1.0, 'prc': 580.0, 'splyAmt': 580.0, 'dcAmt': 0,
                'taxblAmt': 500.0, 'taxAmt': 80.0, 'totAmt': 580.0,
            }],
        }
        payload = build_refund_payload(original, 42, Decimal('0.5'), org_invc_no=17)
        self.assertEqual(payload['rcptTyCd'], 'R')
        self.assertEqual(payload['invcNo'], 42)
        self.assertEqual(payload['orgInvcNo'], 17)
        self.assertEqual(payload['trdInvcNo'], 'REFUND000042')
        self.assertEqual(payload['totAmt'], -290.0)
        self.assertEqual(payload['totTaxAmt'], -40.0)
        [line] = payload['itemList']
        self.assertEqual(line['prc'], -580.0)
        self.assertEqual(line['taxblAmt'], -250.0)
        self.assertEqual(line['qty'], 0.5)
        self.assertEqual(line['splyAmt'], -290.0)
        self.assertAlmostEqual(line['qty'] * line['prc'], line['splyAmt'])
        self.assertEqual(payload['taxAmtB'], -40.0)
        # the original is untouched
        self.assertEqual(original['itemList'][0]['prc'], 580.0)

    def test_stock_lines_add_tax_on_cost(self):
        flour = TestDataFactory.create_ingredient(cost_per_unit=Decimal('100.00'), item_cd='KE2NTBA0000003')
        [line] = build_stock_lines([(flour, Decimal('-2'))])
        self.assertEqual(line['qty'], 2.0)
        self.assertEqual(line['splyAmt'], 200.0)
        self.assertEqual(line['taxAmt'], 32.0)
        self.assertEqual(line['totAmt'], 232.0)


class ClientTests(TestCase):
    """Test the eTIMS HTTP client"""

    def setUp(self):
        self.session = Mock()
        self.client_ = EtimsClient(base_url='https://etims.test/api/', timeout=5, session=self.session)

    def test_post_returns_json(self):
        self.session.post.return_value = kra_response()
        data = self.client_.post('save_sales', {'invcNo': 1}, HEADERS)
        self.assertTrue(is_success(data))
        self.session.post.assert_called_once_with(
            'https://etims.test/api/saveTrnsSalesOsdc', json={'invcNo': 1}, headers=HEADERS, timeout=5.0
        )

    def test_lookup_endpoints(self):
        self.assertEqual(self.client_.url_for('select_notices'), 'https://etims.test/api/selectNoticeList')
        self.assertEqual(self.client_.url_for('save_bhf_customer'), 'https://etims.test/api/saveBhfCustomer')

    def test_unknown_endpoint(self):
        with self.assertRaises(ValueError):
            self.client_.url_for('launch_rockets')

    def test_timeout(self):
        self.session.post.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(EtimsRequestError) as ctx:
            self.client_.post('save_item', {}, HEADERS)
        self.assertIn('timed out', str(ctx.exception))

    def test_invalid_json(self):
        response = kra_response()
        response.json.side_effect = ValueError('No JSON')
        self.session.post.return_value = response
        with self.assertRaises(EtimsRequestError):
            self.client_.post('save_item', {}, HEADERS)

    def test_failure_code_is_not_success(self):
        self.assertFalse(is_success({'resultCd': '910', 'resultMsg': 'Request parameter error'}))
        self.assertFalse(is_success(None))


class CredentialTests(TestCase):
    """Test device header lookup and caching"""

    def setUp(self):
        cache.clear()

    def test_headers_from_active_credential(self):
        TestDataFactory.create_device_credential(tin='P000000001A')
        headers = get_device_headers()
        self.assertEqual(headers['tin'], 'P000000001A')
        self.assertEqual(headers['cmcKey'], 'test-cmc-key')
        self.assertIsNotNone(cache.get(DEVICE_HEADERS_CACHE_KEY))

    def test_saving_credential_invalidates_cache(self):
        TestDataFactory.create_device_credential(tin='P000000001A')
        get_device_headers()
        TestDataFactory.create_device_credential(tin='P000000002B')
        self.assertIsNone(cache.get(DEVICE_HEADERS_CACHE_KEY))
        self.assertEqual(get_device_headers()['tin'], 'P000000002B')

    @override_settings(KRA_TIN='P000000009Z', KRA_BHF_ID='01', KRA_CMC_KEY='settings-key')
    def test_settings_fallback(self):
        headers = get_device_headers()
        self.assertEqual(headers['tin'], 'P000000009Z')
        self.assertEqual(headers['bhfId'], '01')

    @override_settings(KRA_TIN='', KRA_BHF_ID='', KRA_CMC_KEY='')
    def test_not_initialized(self):
        with self.assertRaises(DeviceNotInitialized):
            get_device_headers()


class RefundHelperTests(TestCase):
    """Test refund multiplier and duplicate detection helpers"""

    def test_full_refund(self):
        self.assertEqual(refund_multiplier('full'), Decimal('1'))

    def test_partial_by_percentage(self):
        self.assertEqual(refund_multiplier('partial', refund_percentage='50'), Decimal('0.500000'))

    def test_partial_by_amount(self):
        self.assertEqual(refund_multiplier('partial', refund_amount='145', total_amount=Decimal('580.00')),
                         Decimal('0.250000'))

    def test_partial_over_total(self):
        with self.assertRaises(SubmissionError):
            refund_multiplier('partial', refund_amount='600', total_amount=Decimal('580.00'))

    def test_partial_without_values(self):
        with self.assertRaises(SubmissionError):
            refund_multiplier('partial')

    def test_duplicate_invoice_error(self):
        self.assertTrue(is_duplicate_invoice_error('Invoice number already exists.'))
        self.assertTrue(is_duplicate_invoice_error('DUPLICATE INVOICE'))
        self.assertFalse(is_duplicate_invoice_error('Request parameter error'))
        self.assertFalse(is_duplicate_invoice_error(None))


class KraAPITestCase(TestCase):
    """Authenticated client with an initialized device"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        TestDataFactory.create_device_credential()


class SaleAPITests(KraAPITestCase):
    """Test sale, retry and refund endpoints"""

    def setUp(self):
        super().setUp()
        self.recipe = TestDataFactory.create_recipe(price=Decimal('580.00'), item_cd='KE2NTBA0000001')
        self.order = TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('1'))])

    @patch('requests.Session.post')
    def test_save_sale_success(self, mock_post):
        mock_post.return_value = kra_response(data={
            'curRcptNo': 17, 'totRcptNo': 17, 'intrlData': 'ABC', 'rcptSign': 'SIGN', 'sdcDateTime': '20260101120000'
        })
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'mpesa'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['invoiceNo'], 1)

        invoice = SalesInvoice.objects.get(order=self.order)
        self.assertEqual(invoice.kra_status, 'ok')
        self.assertEqual(invoice.kra_cur_rcpt_no, 17)
        self.assertEqual(invoice.tax_amount, Decimal('80.00'))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'paid')

        record = KraTransaction.objects.get(transaction_type='sale')
        self.assertEqual(record.status, 'success')
        self.assertEqual(record.request_payload['pmtTyCd'], '06')
        self.assertTrue(AuditLog.objects.filter(action='kra_sale').exists())

    @patch('requests.Session.post')
    def test_save_sale_rejected(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error'], 'Request parameter error')
        self.assertEqual(SalesInvoice.objects.get(order=self.order).kra_status, 'error')
        record = KraTransaction.objects.get(transaction_type='sale')
        self.assertEqual(record.result_code, '910')
        self.assertEqual(record.status, 'error')
        self.assertEqual(record.error_message, 'Request parameter error')

    @patch('requests.Session.post')
    def test_save_sale_transport_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data['success'])
        self.assertEqual(KraTransaction.objects.get(transaction_type='sale').status, 'error')

    def test_save_sale_unregistered_recipe(self):
        recipe = TestDataFactory.create_recipe()
        order = TestDataFactory.create_order(items=[(recipe, Decimal('2'))])
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn(recipe.name, response.data['error'])
        self.assertFalse(SalesInvoice.objects.filter(order=order).exists())

    def test_save_sale_invalid_payment_method(self):
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'barter'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Invalid payment method', response.data['error'])

    def test_save_sale_missing_order(self):
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': 99999, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_save_sale_validation_error(self):
        response = self.client.post('/api/v1/kra/save-sale/', {'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order_id', response.data['errors'])

    @patch('requests.Session.post')
    def test_retry_after_duplicate_allocates_new_number(self, mock_post):
        mock_post.side_effect = [
            kra_response('994', 'Invoice number already exists'),
            kra_response(data={'curRcptNo': 3}),
        ]
        first = self.client.post('/api/v1/kra/save-sale/',
                                 {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(first.status_code, status.HTTP_400_BAD_REQUEST)
        invoice = SalesInvoice.objects.get(order=self.order)
        self.assertEqual(invoice.invc_no, 1)

        response = self.client.post('/api/v1/kra/retry-sale/', {'sales_invoice_id': invoice.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice.refresh_from_db()
        self.assertEqual(invoice.invc_no, 2)
        self.assertEqual(invoice.kra_status, 'ok')
        attempts = list(invoice.kra_transactions.order_by('attempt').values_list('attempt', 'status'))
        self.assertEqual(attempts, [(1, 'error'), (2, 'success')])

    @patch('requests.Session.post')
    def test_second_sale_for_failed_order_points_to_retry(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        self.client.post('/api/v1/kra/save-sale/', {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('salesInvoiceId', response.data)
        self.assertEqual(mock_post.call_count, 1)

    @patch('requests.Session.post')
    def test_partial_refund(self, mock_post):
        mock_post.return_value = kra_response(data={'curRcptNo': 17})
        self.client.post('/api/v1/kra/save-sale/', {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        original = SalesInvoice.objects.get(order=self.order, is_refund=False)

        response = self.client.post('/api/v1/kra/refund/', {
            'sales_invoice_id': original.id,
            'refund_type': 'partial',
            'refund_percentage': '50',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['refundMultiplier'], '0.500000')

        refund = SalesInvoice.objects.get(is_refund=True)
        self.assertEqual(refund.invc_no, 2)
        self.assertEqual(refund.org_invc_no, 17)
        self.assertEqual(refund.total_amount, Decimal('-290.00'))
        self.assertEqual(refund.trd_invc_no, 'REFUND000002')
        sent = KraTransaction.objects.get(transaction_type='refund').request_payload
        self.assertEqual(sent['rcptTyCd'], 'R')
        self.assertEqual(sent['orgInvcNo'], 17)
        original.refresh_from_db()
        self.assertEqual(original.kra_status, 'refunded')

    @patch('requests.Session.post')
    def test_item_refund(self, mock_post):
        mock_post.return_value = kra_response(data={'curRcptNo': 17})
        juice = TestDataFactory.create_recipe(price=Decimal('290.00'), item_cd='KE2NTBA0000002')
        order = TestDataFactory.create_order(user=self.user, items=[(self.recipe, Decimal('2')), (juice, Decimal('1'))])
        self.client.post('/api/v1/kra/save-sale/', {'order_id': order.id, 'payment_method': 'cash'}, format='json')
        original = SalesInvoice.objects.get(order=order, is_refund=False)
        self.assertEqual(original.total_amount, Decimal('1450.00'))

        response = self.client.post('/api/v1/kra/refund/', {
            'sales_invoice_id': original.id,
            'refund_type': 'items',
            'items': [{'recipe_id': self.recipe.id, 'quantity': '1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['refundType'], 'items')
        self.assertEqual(response.data['refundMultiplier'], '0.400000')

        sent = KraTransaction.objects.get(transaction_type='refund').request_payload
        [line] = sent['itemList']
        self.assertEqual(line['itemCd'], 'KE2NTBA0000001')
        self.assertEqual(line['itemSeq'], 1)
        self.assertEqual(line['qty'], 1.0)
        self.assertEqual(line['totAmt'], -580.0)
        self.assertEqual(sent['totAmt'], -580.0)
        self.assertEqual(sent['totItemCnt'], 1)
        refund = SalesInvoice.objects.get(is_refund=True)
        self.assertEqual(refund.total_amount, Decimal('-580.00'))

    @patch('requests.Session.post')
    def test_item_refund_over_quantity(self, mock_post):
        mock_post.return_value = kra_response(data={'curRcptNo': 17})
        self.client.post('/api/v1/kra/save-sale/', {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        original = SalesInvoice.objects.get(order=self.order, is_refund=False)

        response = self.client.post('/api/v1/kra/refund/', {
            'sales_invoice_id': original.id,
            'refund_type': 'items',
            'items': [{'recipe_id': self.recipe.id, 'quantity': '3'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn(self.recipe.name, response.data['error'])
        self.assertFalse(SalesInvoice.objects.filter(is_refund=True).exists())
        self.assertEqual(mock_post.call_count, 1)

    def test_item_refund_requires_items(self):
        response = self.client.post('/api/v1/kra/refund/', {'sales_invoice_id': 1, 'refund_type': 'items'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data['errors'])

    def test_refund_requires_registered_sale(self):
        invoice = TestDataFactory.create_sales_invoice(self.order, invc_no=5, kra_status='error')
        response = self.client.post('/api/v1/kra/refund/', {'sales_invoice_id': invoice.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(KRA_TIN='', KRA_BHF_ID='', KRA_CMC_KEY='')
    def test_sale_without_device(self):
        DeviceCredential.objects.all().delete()
        response = self.client.post('/api/v1/kra/save-sale/',
                                    {'order_id': self.order.id, 'payment_method': 'cash'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('initialize', response.data['error'])


class PurchaseSubmissionAPITests(KraAPITestCase):
    """Test sending supplier purchases"""

    def setUp(self):
        super().setUp()
        self.purchase = TestDataFactory.create_purchase(user=self.user, total_tax_amount=Decimal('160.00'))
        TestDataFactory.create_purchase_item(self.purchase, quantity=Decimal('10'), unit_price=Decimal('100.00'))

    @patch('requests.Session.post')
    def test_submit_purchase(self, mock_post):
        mock_post.return_value = kra_response()
        response = self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.purchase.refresh_from_db()
        self.assertEqual(self.purchase.kra_status, 'ok')
        self.assertEqual(self.purchase.kra_invoice_no, 1)
        record = KraTransaction.objects.get(transaction_type='purchase')
        self.assertEqual(record.tax_amount, Decimal('160.00'))
        self.assertEqual(record.request_payload['spplrInvcNo'], self.purchase.supplier_invoice_no)

    @patch('requests.Session.post')
    def test_resubmission_reuses_invoice_number(self, mock_post):
        mock_post.side_effect = [kra_response('910', 'Request parameter error'), kra_response()]
        self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        response = self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        numbers = set(KraTransaction.objects.filter(transaction_type='purchase').values_list('invoice_no', flat=True))
        self.assertEqual(numbers, {1})

    @patch('requests.Session.post')
    def test_already_submitted(self, mock_post):
        mock_post.return_value = kra_response()
        self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        response = self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['alreadySubmitted'])
        self.assertEqual(mock_post.call_count, 1)

    @patch('requests.Session.post')
    def test_submit_purchase_rejected(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        response = self.client.post('/api/v1/kra/purchase/', {'purchase_id': self.purchase.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Request parameter error')
        self.purchase.refresh_from_db()
        self.assertEqual(self.purchase.kra_status, 'error')
        record = KraTransaction.objects.get(transaction_type='purchase')
        self.assertEqual(record.status, 'error')
        self.assertEqual(record.result_code, '910')
        self.assertEqual(record.error_message, 'Request parameter error')

    def test_draft_purchase_rejected(self):
        draft = TestDataFactory.create_purchase(status='draft')
        TestDataFactory.create_purchase_item(draft)
        response = self.client.post('/api/v1/kra/purchase/', {'purchase_id': draft.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ItemAPITests(KraAPITestCase):
    """Test item registration, composition and stock movement"""

    @patch('requests.Session.post')
    def test_register_ingredient(self, mock_post):
        mock_post.return_value = kra_response()
        ingredient = TestDataFactory.create_ingredient(category='Vegetables')
        response = self.client.post('/api/v1/kra/register-item/',
                                    {'item_type': 'ingredient', 'item_id': ingredient.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ingredient.refresh_from_db()
        self.assertEqual(ingredient.item_cd, 'KE2NTBA0000001')
        self.assertEqual(ingredient.item_cls_cd, '50400000')
        self.assertEqual(ingredient.kra_status, 'ok')

    @patch('requests.Session.post')
    def test_register_rejected_keeps_item_unregistered(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        recipe = TestDataFactory.create_recipe()
        response = self.client.post('/api/v1/kra/register-item/',
                                    {'item_type': 'recipe', 'item_id': recipe.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        recipe.refresh_from_db()
        self.assertIsNone(recipe.item_cd)
        self.assertEqual(recipe.kra_status, 'error')

    @patch('requests.Session.post')
    def test_composition_partial_success(self, mock_post):
        mock_post.side_effect = [kra_response(), kra_response('910', 'Request parameter error')]
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        oil = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000003')
        recipe = TestDataFactory.create_recipe(item_cd='KE2NTBA0000001',
                                               components=[(flour, Decimal('0.2')), (oil, Decimal('0.05'))])
        response = self.client.post('/api/v1/kra/send-item-composition/', {'recipe_id': recipe.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'partial_success')
        recipe.refresh_from_db()
        self.assertEqual(recipe.kra_composition_status, 'partial_success')
        self.assertEqual(recipe.kra_composition_no, 1)
        record = KraTransaction.objects.get(transaction_type='item_composition')
        self.assertEqual(record.status, 'partial_success')

    @patch('requests.Session.post')
    def test_composition_all_rejected(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        recipe = TestDataFactory.create_recipe(item_cd='KE2NTBA0000001', components=[(flour, Decimal('0.2'))])
        response = self.client.post('/api/v1/kra/send-item-composition/', {'recipe_id': recipe.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        recipe.refresh_from_db()
        self.assertEqual(recipe.kra_composition_status, 'error')
        self.assertIsNone(recipe.kra_composition_no)
        record = KraTransaction.objects.get(transaction_type='item_composition')
        self.assertEqual(record.status, 'error')
        self.assertEqual(record.error_message, 'Request parameter error')

    @patch('etims_pos.kra.client.EtimsClient.post')
    def test_composition_unexpected_failure_closes_record(self, mock_post):
        mock_post.side_effect = RuntimeError('connection pool exhausted')
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        recipe = TestDataFactory.create_recipe(item_cd='KE2NTBA0000001', components=[(flour, Decimal('0.2'))])
        response = self.client.post('/api/v1/kra/send-item-composition/', {'recipe_id': recipe.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        recipe.refresh_from_db()
        self.assertEqual(recipe.kra_composition_status, 'error')
        record = KraTransaction.objects.get(transaction_type='item_composition')
        self.assertEqual(record.status, 'error')
        self.assertEqual(record.error_message, 'connection pool exhausted')

    def test_composition_requires_registered_recipe(self):
        recipe = TestDataFactory.create_recipe()
        response = self.client.post('/api/v1/kra/send-item-composition/', {'recipe_id': recipe.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('requests.Session.post')
    def test_stock_in(self, mock_post):
        mock_post.return_value = kra_response()
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        response = self.client.post('/api/v1/kra/stock-io/', {
            'items': [{'ingredient_id': flour.id, 'quantity': '5'}],
            'context': 'purchase',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sarTyCd'], '02')
        self.assertEqual(response.data['sarNo'], 1)
        flour.refresh_from_db()
        self.assertEqual(flour.current_stock, Decimal('0.000'))

    def test_stock_mixed_directions(self):
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        oil = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000003')
        response = self.client.post('/api/v1/kra/stock-io/', {
            'items': [{'ingredient_id': flour.id, 'quantity': '5'}, {'ingredient_id': oil.id, 'quantity': '-1'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class StockMasterAPITests(KraAPITestCase):
    """Test reporting remaining stock"""

    @patch('requests.Session.post')
    def test_save_stock_master(self, mock_post):
        mock_post.return_value = kra_response()
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        flour.current_stock = Decimal('12.500')
        flour.save()
        response = self.client.post('/api/v1/kra/save-stock-master/', {'ingredient_id': flour.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rsdQty'], 12.5)

        record = KraTransaction.objects.get(transaction_type='stock_master')
        self.assertEqual(record.status, 'success')
        self.assertEqual(record.ingredient, flour)
        self.assertEqual(record.request_payload['itemCd'], 'KE2NTBA0000002')
        self.assertTrue(mock_post.call_args[0][0].endswith('/saveStockMaster'))
        self.assertTrue(AuditLog.objects.filter(action='kra_stock_master').exists())

    @patch('requests.Session.post')
    def test_save_stock_master_explicit_quantity(self, mock_post):
        mock_post.return_value = kra_response()
        flour = TestDataFactory.create_ingredient(item_cd='KE2NTBA0000002')
        response = self.client.post('/api/v1/kra/save-stock-master/',
                                    {'ingredient_id': flour.id, 'rsd_qty': '3.25'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(KraTransaction.objects.get().request_payload['rsdQty'], 3.25)

    def test_save_stock_master_unregistered(self):
        flour = TestDataFactory.create_ingredient()
        response = self.client.post('/api/v1/kra/save-stock-master/', {'ingredient_id': flour.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('registered', response.data['error'])
        self.assertFalse(KraTransaction.objects.exists())

    def test_save_stock_master_missing_ingredient(self):
        response = self.client.post('/api/v1/kra/save-stock-master/', {'ingredient_id': 99999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CustomerRegistrationAPITests(KraAPITestCase):
    """Test registering branch customers"""

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer(name='Acme Ltd', kra_pin='P051111111A')
        self.customer.phone = '0712345678'
        self.customer.save()

    @patch('requests.Session.post')
    def test_save_customer(self, mock_post):
        mock_post.return_value = kra_response()
        response = self.client.post('/api/v1/kra/save-customer/', {'customer_id': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['custNo'], '0712345678')

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.kra_status, 'ok')
        self.assertEqual(self.customer.kra_customer_no, '0712345678')
        record = KraTransaction.objects.get(transaction_type='customer')
        self.assertEqual(record.customer, self.customer)
        self.assertEqual(record.request_payload['custTin'], 'P051111111A')
        self.assertEqual(record.request_payload['useYn'], 'Y')
        self.assertTrue(mock_post.call_args[0][0].endswith('/saveBhfCustomer'))
        self.assertTrue(AuditLog.objects.filter(action='kra_customer').exists())

    @patch('requests.Session.post')
    def test_save_customer_rejected(self, mock_post):
        mock_post.return_value = kra_response('910', 'Request parameter error')
        response = self.client.post('/api/v1/kra/save-customer/', {'customer_id': self.customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.kra_status, 'error')
        self.assertEqual(self.customer.kra_error, 'Request parameter error')
        record = KraTransaction.objects.get(transaction_type='customer')
        self.assertEqual(record.status, 'error')

    def test_save_customer_without_pin(self):
        customer = TestDataFactory.create_customer()
        response = self.client.post('/api/v1/kra/save-customer/', {'customer_id': customer.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('KRA PIN', response.data['error'])


class ReferenceListAPITests(KraAPITestCase):
    """Test the KRA code, item class and notice lookups"""

    @patch('requests.Session.post')
    def test_code_list(self, mock_post):
        mock_post.return_value = kra_response(data={'clsList': [{'cdCls': '04', 'cdClsNm': 'Taxation Type'}]})
        response = self.client.get('/api/v1/kra/code-list/', {'last_req_dt': '20240101000000'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['clsList'][0]['cdCls'], '04')
        self.assertEqual(mock_post.call_args[1]['json']['lastReqDt'], '20240101000000')
        self.assertFalse(KraTransaction.objects.exists())

        # served from the cache the second time
        self.client.get('/api/v1/kra/code-list/', {'last_req_dt': '20240101000000'})
        self.assertEqual(mock_post.call_count, 1)

    @patch('requests.Session.post')
    def test_item_classification_list_without_changes(self, mock_post):
        mock_post.return_value = kra_response('001', 'There is no search result')
        response = self.client.get('/api/v1/kra/item-classification-list/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['itemClsList'], [])
        self.assertEqual(response.data['count'], 0)
        self.assertTrue(mock_post.call_args[0][0].endswith('/selectItemClsList'))

    @patch('requests.Session.post')
    def test_notices(self, mock_post):
        mock_post.return_value = kra_response(data={'noticeList': [{'noticeNo': 1, 'title': 'Maintenance'}]})
        response = self.client.get('/api/v1/kra/notices/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['noticeList'][0]['noticeNo'], 1)
        self.assertTrue(mock_post.call_args[0][0].endswith('/selectNoticeList'))

    @patch('requests.Session.post')
    def test_lookup_rejected(self, mock_post):
        mock_post.return_value = kra_response('902', 'This device is not installed')
        response = self.client.get('/api/v1/kra/notices/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'This device is not installed')

    def test_invalid_last_request_date(self):
        response = self.client.get('/api/v1/kra/code-list/', {'last_req_dt': '2024-01-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('last_req_dt', response.data['errors'])


class DeviceCredentialAPITests(TestCase):
    """Test device credential endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_get_not_initialized(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/kra/device-credentials/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['initialized'])

    def test_save_requires_kra_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/kra/device-credentials/',
                                    {'tin': 'P051234567X', 'bhf_id': '00', 'cmc_key': 'secret'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_save_replaces_active_credential(self):
        old = TestDataFactory.create_device_credential()
        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.post('/api/v1/kra/device-credentials/',
                                    {'tin': 'p059999999z', 'bhf_id': '01', 'cmc_key': 'secret-key-1234'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['credential']['tin'], 'P059999999Z')
        self.assertEqual(response.data['credential']['cmc_key_hint'], '...1234')
        self.assertNotIn('cmc_key', response.data['credential'])
        old.refresh_from_db()
        self.assertFalse(old.is_active)
        self.assertEqual(get_device_headers()['tin'], 'P059999999Z')
        self.assertTrue(AuditLog.objects.filter(action='kra_device_save').exists())

    def test_invalid_branch(self):
        self.client.authenticate_user(TestDataFactory.create_user(is_superuser=True))
        response = self.client.post('/api/v1/kra/device-credentials/',
                                    {'tin': 'P051234567X', 'bhf_id': 'A', 'cmc_key': 'secret'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bhf_id', response.data['errors'])

    def test_requires_authentication(self):
        response = self.client.get('/api/v1/kra/device-credentials/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class TransactionAPITests(TestCase):
    """Test the transaction log endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        KraTransaction.objects.create(transaction_type='sale', invoice_no=1, status='success', result_code='000')
        KraTransaction.objects.create(transaction_type='sale', invoice_no=2, status='error', result_code='910')
        KraTransaction.objects.create(transaction_type='purchase', invoice_no=1, status='success', result_code='000')

    def test_list_filtered_by_type(self):
        response = self.client.get('/api/v1/kra/transactions/?type=sale')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertNotIn('request_payload', response.data['results'][0])

    def test_list_filtered_by_status(self):
        response = self.client.get('/api/v1/kra/transactions/?status=error')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['invoice_no'], 2)

    def test_list_invalid_page(self):
        response = self.client.get('/api/v1/kra/transactions/?page=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('page', response.data)
        response = self.client.get('/api/v1/kra/transactions/?limit=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail(self):
        record = KraTransaction.objects.get(transaction_type='purchase')
        response = self.client.get(f'/api/v1/kra/transactions/{record.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('request_payload', response.data)

    def test_statistics(self):
        response = self.client.get('/api/v1/kra/transactions/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['by_type'], {'purchase': 1, 'sale': 2})
        self.assertEqual(response.data['by_result_code'], {'000': 2, '910': 1})
        self.assertEqual(response.data['success_rate'], 66.67)
