"""
KRA eTIMS submission flows.

Every flow follows the same shape: validate local data, allocate the
document number, create a ``pending`` KraTransaction, POST to eTIMS and
record the outcome on both the transaction and the business object.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.core.cache import cache
from django.db import transaction
from django.db.models import Count

from etims_pos.catalog.models import Ingredient, Recipe
from etims_pos.core.utils import create_audit_log
from etims_pos.parties.models import Customer
from etims_pos.pos.models import Order, SalesInvoice
from etims_pos.purchasing.models import Purchase
from .client import NO_RESULTS_CODE, SUCCESS_CODE, EtimsClient, EtimsRequestError, is_success
from .codes import PAYMENT_CODES, map_category_code, stock_movement_code
from .credentials import get_device_headers
from .models import KraTransaction
from .payloads import (
    build_composition_payload, build_customer_payload, build_item_payload, build_lookup_payload,
    build_purchase_payload, build_refund_payload, build_sale_lines, build_sale_payload, build_stock_io_payload,
    build_stock_lines, build_stock_master_payload, to_decimal,
)
from .sequences import (
    next_composition_number, next_item_code, next_purchase_invoice_number, next_sales_invoice_number,
    next_sar_number,
)

logger = logging.getLogger(__name__)

DUPLICATE_INVOICE_MARKERS = (
    'invoice number already exists',
    'duplicate invoice',
    'invoice already exists',
)
MULTIPLIER_PLACES = Decimal('0.000001')


class SubmissionError(Exception):
    """A flow cannot proceed; rendered as ``{'success': False, 'error': message}``"""

    def __init__(self, message, status_code=400, extra=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}


class SubmissionResult:
    """Outcome of one flow, ready to be rendered by a view"""

    def __init__(self, success, message, kra_response=None, record=None, data=None):
        self.success = success
        self.message = message
        self.kra_response = kra_response
        self.record = record
        self.data = data or {}

    def to_response_data(self):
        body = {'success': self.success}
        if self.success:
            body['message'] = self.message
        else:
            body['error'] = self.message
        if self.kra_response is not None:
            body['kraResponse'] = self.kra_response
        if self.record is not None:
            body['transactionId'] = self.record.id
        body.update(self.data)
        return body


def get_client():
    return EtimsClient()


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _failure_message(response, default):
    return (response or {}).get('resultMsg') or default


# ==================== SUBMISSION ====================

def mark_error(record, message):
    record.status = 'error'
    record.error_message = message
    record.save(update_fields=['status', 'error_message', 'updated_at'])


def submit_transaction(record, endpoint, payload, headers, client=None):
    """
    POST ``payload`` and record the outcome on ``record``.

    The record ends ``success`` when eTIMS answers resultCd 000 and ``error``
    otherwise. Transport failures mark it ``error`` and propagate.
    """
    record.request_payload = payload
    record.save(update_fields=['request_payload', 'updated_at'])

    client = client or get_client()
    try:
        response = client.post(endpoint, payload, headers)
    except Exception as exc:
        mark_error(record, str(exc))
        raise

    record.response_data = response
    record.result_code = str(response.get('resultCd') or '')
    record.result_message = response.get('resultMsg') or ''
    if is_success(response):
        record.status = 'success'
        record.error_message = ''
    else:
        record.status = 'error'
        record.error_message = _failure_message(response, 'KRA request failed')
        logger.warning(f"eTIMS {endpoint} rejected {record.transaction_type} #{record.invoice_no}: "
                       f"{record.result_code} {record.error_message}")
    record.save()
    return response


# ==================== PURCHASES ====================

def submit_purchase(purchase_id, user=None, request=None):
    try:
        purchase = Purchase.objects.select_related('supplier').get(pk=purchase_id)
    except Purchase.DoesNotExist:
        raise SubmissionError('Purchase not found', status_code=404)

    already_sent = purchase.kra_status == 'ok' or purchase.kra_transactions.filter(status='success').exists()
    if already_sent:
        raise SubmissionError('This purchase has already been successfully submitted to KRA',
                              extra={'alreadySubmitted': True})
    if purchase.status != 'finalized':
        raise SubmissionError('Only finalized purchases can be submitted to KRA')
    if not purchase.items.exists():
        raise SubmissionError('Purchase has no items')

    headers = get_device_headers()

    if not purchase.kra_invoice_no:
        purchase.kra_invoice_no = next_purchase_invoice_number()
        purchase.save(update_fields=['kra_invoice_no', 'updated_at'])

    payload = build_purchase_payload(purchase, purchase.kra_invoice_no, headers)
    record = KraTransaction.objects.create(
        transaction_type='purchase',
        invoice_no=purchase.kra_invoice_no,
        items_data=payload['itemList'],
        total_amount=to_decimal(payload['totAmt']),
        tax_amount=to_decimal(payload['totTaxAmt']),
        purchase=purchase,
        attempt=purchase.kra_transactions.count() + 1,
        created_by=user,
    )
    logger.info(f"Submitting purchase {purchase.purchase_number} to KRA as invoice {purchase.kra_invoice_no}")

    try:
        response = submit_transaction(record, 'insert_purchase', payload, headers)
    except Exception:
        purchase.kra_status = 'error'
        purchase.save(update_fields=['kra_status', 'updated_at'])
        raise

    success = is_success(response)
    purchase.kra_status = 'ok' if success else 'error'
    purchase.save(update_fields=['kra_status', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='kra_purchase',
        model_name='Purchase',
        object_id=str(purchase.id),
        object_name=purchase.supplier.name,
        object_reference=str(purchase.kra_invoice_no),
        changes={'status': record.status, 'result_code': record.result_code,
                 'supplier_invoice_no': purchase.supplier_invoice_no},
    )

    if success:
        return SubmissionResult(True, 'Purchase sent to KRA successfully', response, record,
                                {'invoiceNo': purchase.kra_invoice_no})
    return SubmissionResult(False, _failure_message(response, 'KRA purchase failed'), response, record,
                            {'invoiceNo': purchase.kra_invoice_no})


# ==================== SALES ====================

def is_duplicate_invoice_error(message):
    message = (message or '').lower()
    return any(marker in message for marker in DUPLICATE_INVOICE_MARKERS)


def _apply_receipt(invoice, response):
    data = response.get('data') or {}
    invoice.kra_cur_rcpt_no = _as_int(data.get('curRcptNo'))
    invoice.kra_tot_rcpt_no = _as_int(data.get('totRcptNo'))
    invoice.kra_intrl_data = data.get('intrlData') or ''
    invoice.kra_rcpt_sign = data.get('rcptSign') or ''
    invoice.kra_sdc_date_time = data.get('sdcDateTime') or ''


def _send_sale(invoice, headers, attempt, user=None, request=None, action='kra_sale'):
    order = invoice.order
    lines = build_sale_lines(list(order.items.select_related('recipe')), invoice.discount_amount)
    payload = build_sale_payload(invoice, lines, headers)

    record = KraTransaction.objects.create(
        transaction_type='sale',
        invoice_no=invoice.invc_no,
        items_data=lines,
        total_amount=to_decimal(payload['totAmt']),
        tax_amount=to_decimal(payload['totTaxAmt']),
        sales_invoice=invoice,
        attempt=attempt,
        created_by=user,
    )
    logger.info(f"Submitting sale invoice {invoice.invc_no} (attempt {attempt}) for order {order}")

    try:
        response = submit_transaction(record, 'save_sales', payload, headers)
    except Exception as exc:
        invoice.kra_status = 'error'
        invoice.kra_error = str(exc)
        invoice.save(update_fields=['kra_status', 'kra_error', 'updated_at'])
        raise

    success = is_success(response)
    if success:
        invoice.kra_status = 'ok'
        invoice.kra_error = ''
        _apply_receipt(invoice, response)
        order.status = 'paid'
        order.save(update_fields=['status', 'updated_at'])
    else:
        invoice.kra_status = 'error'
        invoice.kra_error = _failure_message(response, 'KRA sale failed')
    invoice.save()

    create_audit_log(
        request=request,
        user=user,
        action=action,
        model_name='SalesInvoice',
        object_id=str(invoice.id),
        object_name=str(order),
        object_reference=str(invoice.invc_no),
        changes={'status': record.status, 'result_code': record.result_code, 'attempt': attempt},
    )

    data = {'invoiceNo': invoice.invc_no, 'salesInvoiceId': invoice.id}
    if success:
        return SubmissionResult(True, 'Sale registered with KRA successfully', response, record, data)
    return SubmissionResult(False, invoice.kra_error, response, record, data)


def submit_sale(order_id, payment_method, customer_id=None, user=None, request=None):
    try:
        order = Order.objects.select_related('customer').get(pk=order_id)
    except Order.DoesNotExist:
        raise SubmissionError('Order not found', status_code=404)

    payment_method = str(payment_method or '').strip()
    if payment_method.lower() not in PAYMENT_CODES and payment_method not in PAYMENT_CODES.values():
        raise SubmissionError(f'Invalid payment method: {payment_method or "(empty)"}')
    if payment_method.lower() in PAYMENT_CODES:
        payment_method = payment_method.lower()
    else:
        payment_method = next(name for name, code in PAYMENT_CODES.items() if code == payment_method)

    sales = order.sales_invoices.filter(is_refund=False)
    if sales.filter(kra_status__in=['ok', 'refunded']).exists():
        raise SubmissionError('Order has already been registered with KRA')
    failed = sales.filter(kra_status__in=['pending', 'error']).first()
    if failed:
        raise SubmissionError('Order has a failed KRA submission; retry it instead',
                              extra={'salesInvoiceId': failed.id, 'invoiceNo': failed.invc_no})

    items = list(order.items.select_related('recipe'))
    if not items:
        raise SubmissionError('Order has no items')
    unregistered = sorted({item.recipe.name for item in items if not item.recipe.item_cd})
    if unregistered:
        raise SubmissionError(f"Recipes must be registered with KRA first: {', '.join(unregistered)}")

    customer = order.customer
    if customer_id:
        try:
            customer = Customer.objects.get(pk=customer_id)
        except Customer.DoesNotExist:
            raise SubmissionError('Customer not found', status_code=404)

    headers = get_device_headers()
    lines = build_sale_lines(items, order.discount_amount)

    with transaction.atomic():
        invoice = SalesInvoice.objects.create(
            order=order,
            invc_no=next_sales_invoice_number(),
            trd_invc_no=order.order_number or str(order.id),
            payment_method=payment_method,
            customer=customer,
            cust_tin=(customer.kra_pin or '') if customer else '',
            cust_nm=customer.name if customer else order.customer_name,
            total_amount=sum((to_decimal(line['totAmt']) for line in lines), Decimal('0.00')),
            taxable_amount=sum((to_decimal(line['taxblAmt']) for line in lines), Decimal('0.00')),
            tax_amount=sum((to_decimal(line['taxAmt']) for line in lines), Decimal('0.00')),
            discount_amount=order.discount_amount,
            created_by=user,
        )

    return _send_sale(invoice, headers, attempt=1, user=user, request=request)


def retry_sale(sales_invoice_id, user=None, request=None):
    """
    Re-send a failed sale as a new attempt.

    The invoice keeps its number unless eTIMS rejected it as a duplicate, in
    which case a fresh number is allocated.
    """
    try:
        invoice = SalesInvoice.objects.select_related('order').get(pk=sales_invoice_id, is_refund=False)
    except SalesInvoice.DoesNotExist:
        raise SubmissionError('Sales invoice not found', status_code=404)

    if invoice.kra_status in ('ok', 'refunded'):
        raise SubmissionError('Sale has already been registered with KRA')

    last = invoice.kra_transactions.order_by('-attempt', '-id').first()
    attempt = last.attempt + 1 if last else 1
    headers = get_device_headers()

    if is_duplicate_invoice_error(invoice.kra_error or (last.error_message if last else '')):
        with transaction.atomic():
            previous = invoice.invc_no
            invoice.invc_no = next_sales_invoice_number()
            invoice.save(update_fields=['invc_no', 'updated_at'])
        logger.info(f"Duplicate invoice error for {previous}; retrying as {invoice.invc_no}")

    return _send_sale(invoice, headers, attempt=attempt, user=user, request=request, action='kra_sale_retry')


def refund_multiplier(refund_type, refund_percentage=None, refund_amount=None, total_amount=None):
    """Fraction of the original sale being refunded, in (0, 1]"""
    refund_type = (refund_type or 'full').lower()
    if refund_type == 'full':
        return Decimal('1')
    if refund_type != 'partial':
        raise SubmissionError('refund_type must be "full", "partial" or "items"')

    try:
        percentage = Decimal(str(refund_percentage)) if refund_percentage not in (None, '') else None
        amount = Decimal(str(refund_amount)) if refund_amount not in (None, '') else None
    except InvalidOperation:
        raise SubmissionError('Refund percentage and amount must be numbers')

    if percentage is not None and percentage > 0:
        if percentage > 100:
            raise SubmissionError('Refund percentage cannot exceed 100%')
        multiplier = percentage / 100
    elif amount is not None and amount > 0:
        total_amount = to_decimal(total_amount)
        if total_amount <= 0:
            raise SubmissionError('Invoice total must be greater than 0')
        multiplier = amount / total_amount
    else:
        raise SubmissionError('Please provide either refund percentage or amount for partial refund')

    multiplier = multiplier.quantize(MULTIPLIER_PLACES)
    if multiplier <= 0 or multiplier > 1:
        raise SubmissionError('Refund must be greater than 0 and at most the invoice total')
    return multiplier


def refund_line_multipliers(original_payload, refund_items):
    """
    Fraction of each sale line (keyed by itemSeq) covered by ``refund_items``.

    ``refund_items`` are ``{'recipe_id', 'quantity'}`` entries; the quantity for
    a recipe is taken from its sale lines in order.
    """
    if not refund_items:
        raise SubmissionError('Select at least one item to refund')

    recipes = {
        recipe_id: (item_cd, name)
        for recipe_id, item_cd, name in Recipe.objects.filter(
            pk__in=[entry.get('recipe_id') for entry in refund_items]
        ).values_list('id', 'item_cd', 'name')
    }
    wanted = {}
    names = {}
    for entry in refund_items:
        recipe_id = entry.get('recipe_id')
        try:
            quantity = Decimal(str(entry.get('quantity')))
        except InvalidOperation:
            raise SubmissionError(f'Invalid refund quantity for recipe {recipe_id}')
        if quantity <= 0:
            raise SubmissionError(f'Refund quantity for recipe {recipe_id} must be greater than 0')
        if recipe_id not in recipes or not recipes[recipe_id][0]:
            raise SubmissionError(f'Recipe {recipe_id} is not on this invoice')
        item_cd, name = recipes[recipe_id]
        wanted[item_cd] = wanted.get(item_cd, Decimal('0')) + quantity
        names[item_cd] = name

    multipliers = {}
    for line in original_payload.get('itemList', []):
        remaining = wanted.get(line.get('itemCd'))
        sold = to_decimal(line.get('qty'))
        if not remaining or sold <= 0:
            continue
        used = min(sold, remaining)
        multipliers[line.get('itemSeq')] = used / sold
        wanted[line.get('itemCd')] = remaining - used

    over = sorted(names[item_cd] for item_cd, quantity in wanted.items() if quantity > 0)
    if over:
        raise SubmissionError(f"Refund quantity exceeds what was sold for: {', '.join(over)}")
    return multipliers


def _share_of_total(refund_total, invoice_total):
    invoice_total = to_decimal(invoice_total)
    if invoice_total <= 0:
        return Decimal('1')
    share = abs(to_decimal(refund_total)) / invoice_total
    return min(share, Decimal('1')).quantize(MULTIPLIER_PLACES)


def _original_sale_payload(invoice, headers):
    sent = invoice.kra_transactions.filter(transaction_type='sale', status='success').order_by('-id').first()
    if sent and sent.request_payload:
        return sent.request_payload
    lines = build_sale_lines(list(invoice.order.items.select_related('recipe')), invoice.discount_amount)
    return build_sale_payload(invoice, lines, headers, sold_at=invoice.created_at)


def refund_sale(sales_invoice_id, refund_type='full', refund_percentage=None, refund_amount=None,
                refund_items=None, user=None, request=None):
    """
    Issue a credit note for a registered sale.

    ``refund_type`` is ``full``, ``partial`` (by percentage or amount) or
    ``items`` (selected recipes by quantity).
    """
    try:
        original = SalesInvoice.objects.select_related('order', 'customer').get(pk=sales_invoice_id, is_refund=False)
    except SalesInvoice.DoesNotExist:
        raise SubmissionError('Sales invoice not found', status_code=404)

    if original.kra_status == 'refunded':
        raise SubmissionError('Invoice has already been refunded')
    if original.kra_status != 'ok':
        raise SubmissionError('Only invoices registered with KRA can be refunded')

    line_multipliers = None
    multiplier = None
    if refund_type != 'items':
        multiplier = refund_multiplier(refund_type, refund_percentage, refund_amount, original.total_amount)
    headers = get_device_headers()
    original_payload = _original_sale_payload(original, headers)
    if refund_type == 'items':
        line_multipliers = refund_line_multipliers(original_payload, refund_items)
    org_invc_no = original.kra_cur_rcpt_no or original.invc_no

    with transaction.atomic():
        refund_no = next_sales_invoice_number()
        payload = build_refund_payload(original_payload, refund_no, multiplier or 1, org_invc_no=org_invc_no,
                                       line_multipliers=line_multipliers)
        if multiplier is None:
            multiplier = _share_of_total(payload['totAmt'], original.total_amount)
        refund = SalesInvoice.objects.create(
            order=original.order,
            invc_no=refund_no,
            org_invc_no=org_invc_no,
            trd_invc_no=payload['trdInvcNo'],
            payment_method=original.payment_method,
            customer=original.customer,
            cust_tin=original.cust_tin,
            cust_nm=original.cust_nm,
            total_amount=to_decimal(payload['totAmt']),
            taxable_amount=to_decimal(payload['totTaxblAmt']),
            tax_amount=to_decimal(payload['totTaxAmt']),
            discount_amount=-(original.discount_amount * multiplier).quantize(Decimal('0.01')),
            is_refund=True,
            original_invoice=original,
            refund_multiplier=multiplier,
            created_by=user,
        )

    record = KraTransaction.objects.create(
        transaction_type='refund',
        invoice_no=refund_no,
        items_data=payload['itemList'],
        total_amount=refund.total_amount,
        tax_amount=refund.tax_amount,
        sales_invoice=refund,
        created_by=user,
    )
    logger.info(f"Submitting credit note {refund_no} for invoice {original.invc_no} ({multiplier})")

    try:
        response = submit_transaction(record, 'save_sales', payload, headers)
    except Exception as exc:
        refund.kra_status = 'error'
        refund.kra_error = str(exc)
        refund.save(update_fields=['kra_status', 'kra_error', 'updated_at'])
        raise

    success = is_success(response)
    if success:
        refund.kra_status = 'ok'
        _apply_receipt(refund, response)
        original.kra_status = 'refunded'
        original.save(update_fields=['kra_status', 'updated_at'])
    else:
        refund.kra_status = 'error'
        refund.kra_error = _failure_message(response, 'KRA refund failed')
    refund.save()

    create_audit_log(
        request=request,
        user=user,
        action='kra_refund',
        model_name='SalesInvoice',
        object_id=str(refund.id),
        object_name=str(original),
        object_reference=str(refund_no),
        changes={'status': record.status, 'refund_type': refund_type, 'multiplier': str(multiplier),
                 'original_invoice': original.invc_no},
    )

    data = {'refundInvoiceNo': refund_no, 'salesInvoiceId': refund.id, 'refundMultiplier': str(multiplier),
            'refundType': refund_type}
    if success:
        return SubmissionResult(True, 'Refund registered with KRA successfully', response, record, data)
    return SubmissionResult(False, refund.kra_error, response, record, data)


# ==================== ITEMS ====================

ITEM_MODELS = {
    'ingredient': Ingredient,
    'recipe': Recipe,
}


def register_item(item_type, item_id, user=None, request=None):
    """Register an ingredient or recipe with saveItem, issuing its item code"""
    model = ITEM_MODELS.get(item_type)
    if model is None:
        raise SubmissionError('item_type must be "ingredient" or "recipe"')
    try:
        item = model.objects.get(pk=item_id)
    except model.DoesNotExist:
        raise SubmissionError(f'{item_type.capitalize()} not found', status_code=404)

    headers = get_device_headers()
    item_cd = item.item_cd or next_item_code()
    item_cls_cd = item.item_cls_cd or map_category_code(item.category)
    payload = build_item_payload(item, item_cd, item_cls_cd, headers)

    record = KraTransaction.objects.create(
        transaction_type='item_registration',
        items_data=[{'itemCd': item_cd, 'itemClsCd': item_cls_cd, 'itemNm': item.name}],
        total_amount=to_decimal(payload['dftPrc']),
        created_by=user,
        **{item_type: item},
    )

    try:
        response = submit_transaction(record, 'save_item', payload, headers)
    except Exception:
        item.kra_status = 'error'
        item.save(update_fields=['kra_status', 'updated_at'])
        raise

    success = is_success(response)
    if success:
        item.item_cd = item_cd
        item.item_cls_cd = item_cls_cd
        item.kra_status = 'ok'
        item.save(update_fields=['item_cd', 'item_cls_cd', 'kra_status', 'updated_at'])
    else:
        item.kra_status = 'error'
        item.save(update_fields=['kra_status', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='kra_item_register',
        model_name=model.__name__,
        object_id=str(item.id),
        object_name=item.name,
        object_reference=item_cd,
        changes={'status': record.status, 'item_cls_cd': item_cls_cd},
    )

    data = {'itemCd': item_cd, 'itemClsCd': item_cls_cd}
    if success:
        return SubmissionResult(True, f'{item.name} registered with KRA successfully', response, record, data)
    return SubmissionResult(False, _failure_message(response, 'KRA registration failed'), response, record, data)


def send_item_composition(recipe_id, user=None, request=None):
    """
    Send one saveItemComposition per recipe component.

    Ingredients without an item code are registered first. The composition
    is ``success`` when every component is accepted and ``partial_success``
    when only some are.
    """
    try:
        recipe = Recipe.objects.get(pk=recipe_id)
    except Recipe.DoesNotExist:
        raise SubmissionError('Recipe not found', status_code=404)

    if not recipe.item_cd:
        raise SubmissionError('Recipe must be registered with KRA first. '
                              'Please register the recipe item before sending composition.')
    components = list(recipe.components.select_related('ingredient'))
    if not components:
        raise SubmissionError('Recipe has no components')

    headers = get_device_headers()

    registrations = []
    for component in components:
        ingredient = component.ingredient
        if ingredient.is_kra_registered:
            continue
        result = register_item('ingredient', ingredient.id, user=user, request=request)
        registrations.append({'ingredient': ingredient.name, 'success': result.success,
                              'itemCd': result.data.get('itemCd')})
        if not result.success:
            raise SubmissionError(f'Failed to register ingredient {ingredient.name}: {result.message}',
                                  extra={'kraResponse': result.kra_response, 'registrations': registrations})
        ingredient.refresh_from_db()

    composition_no = next_composition_number()
    payloads = [build_composition_payload(recipe.item_cd, component, headers) for component in components]
    record = KraTransaction.objects.create(
        transaction_type='item_composition',
        invoice_no=composition_no,
        items_data=[{'cpstItemCd': p['cpstItemCd'], 'cpstQty': p['cpstQty']} for p in payloads],
        request_payload={'compositions': payloads},
        recipe=recipe,
        created_by=user,
    )

    client = get_client()
    results = []
    try:
        for component, payload in zip(components, payloads):
            outcome = {'ingredient': component.ingredient.name, 'cpstItemCd': payload['cpstItemCd']}
            try:
                response = client.post('save_item_composition', payload, headers)
            except EtimsRequestError as exc:
                logger.error(f"Composition {composition_no} failed for {component.ingredient.name}: {exc}")
                outcome.update({'success': False, 'error': str(exc)})
            else:
                outcome.update({'success': is_success(response), 'kraResponse': response})
                if not outcome['success']:
                    outcome['error'] = _failure_message(response, 'KRA composition failed')
            results.append(outcome)
    except Exception as exc:
        logger.exception(f"Composition {composition_no} for {recipe.name} aborted")
        recipe.kra_composition_status = 'error'
        recipe.save(update_fields=['kra_composition_status', 'updated_at'])
        mark_error(record, str(exc))
        raise

    sent = sum(1 for outcome in results if outcome['success'])
    if sent == len(results):
        record.status = 'success'
        recipe.kra_composition_status = 'ok'
    elif sent:
        record.status = 'partial_success'
        recipe.kra_composition_status = 'partial_success'
    else:
        record.status = 'error'
        recipe.kra_composition_status = 'error'
    errors = [outcome['error'] for outcome in results if not outcome['success']]
    record.error_message = '; '.join(errors)
    record.response_data = {'results': results}
    last_response = next((o['kraResponse'] for o in reversed(results) if 'kraResponse' in o), {})
    record.result_code = str(last_response.get('resultCd') or '')
    record.result_message = last_response.get('resultMsg') or ''
    record.save()

    if sent:
        recipe.kra_composition_no = composition_no
    recipe.save(update_fields=['kra_composition_status', 'kra_composition_no', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='kra_composition',
        model_name='Recipe',
        object_id=str(recipe.id),
        object_name=recipe.name,
        object_reference=str(composition_no),
        changes={'status': record.status, 'sent': sent, 'total': len(results)},
    )

    data = {'compositionNo': composition_no, 'results': results, 'registrations': registrations,
            'status': record.status}
    if sent == len(results):
        return SubmissionResult(True, f'Composition for {recipe.name} sent to KRA successfully', None, record, data)
    if sent:
        return SubmissionResult(True, f'{sent} of {len(results)} components sent to KRA', None, record, data)
    return SubmissionResult(False, errors[0] if errors else 'KRA composition failed', None, record, data)


# ==================== STOCK ====================

def submit_stock_io(items, context=None, user=None, request=None):
    """Report a stock movement (insertStockIO) for one or more ingredients"""
    if not items:
        raise SubmissionError('At least one item is required')

    movements = []
    for entry in items:
        ingredient_id = entry.get('ingredient_id')
        try:
            quantity = Decimal(str(entry.get('quantity')))
        except InvalidOperation:
            raise SubmissionError(f'Invalid quantity for ingredient {ingredient_id}')
        if quantity == 0:
            raise SubmissionError(f'Quantity for ingredient {ingredient_id} cannot be zero')
        try:
            ingredient = Ingredient.objects.get(pk=ingredient_id)
        except Ingredient.DoesNotExist:
            raise SubmissionError(f'Ingredient {ingredient_id} not found', status_code=404)
        movements.append((ingredient, quantity))

    incoming = [quantity > 0 for _, quantity in movements]
    if any(incoming) and not all(incoming):
        raise SubmissionError('All items in one stock movement must move in the same direction')

    unregistered = sorted({ingredient.name for ingredient, _ in movements if not ingredient.item_cd})
    if unregistered:
        raise SubmissionError(f"Ingredients must be registered with KRA first: {', '.join(unregistered)}")

    direction = movements[0][1]
    sar_type = stock_movement_code(direction, context)
    headers = get_device_headers()

    sar_no = next_sar_number()
    lines = build_stock_lines(movements)
    remark = f"Stock {'in' if direction > 0 else 'out'} ({context or 'manual'}) for {len(lines)} items"
    payload = build_stock_io_payload(sar_no, lines, sar_type, headers, remark=remark)

    record = KraTransaction.objects.create(
        transaction_type='stock_io',
        invoice_no=sar_no,
        items_data=lines,
        total_amount=to_decimal(payload['totAmt']),
        tax_amount=to_decimal(payload['totTaxAmt']),
        ingredient=movements[0][0] if len(movements) == 1 else None,
        created_by=user,
    )
    response = submit_transaction(record, 'insert_stock_io', payload, headers)

    create_audit_log(
        request=request,
        user=user,
        action='kra_stock_io',
        model_name='KraTransaction',
        object_id=str(record.id),
        object_name=remark,
        object_reference=str(sar_no),
        changes={'status': record.status, 'sarTyCd': sar_type, 'items': len(lines)},
    )

    data = {'sarNo': sar_no, 'sarTyCd': sar_type}
    if is_success(response):
        return SubmissionResult(True, 'Stock movement sent to KRA successfully', response, record, data)
    return SubmissionResult(False, _failure_message(response, 'KRA stock movement failed'), response, record, data)


def save_stock_master(ingredient_id, remaining_quantity=None, user=None, request=None):
    """Report the quantity left on hand for an ingredient (saveStockMaster)"""
    try:
        ingredient = Ingredient.objects.get(pk=ingredient_id)
    except Ingredient.DoesNotExist:
        raise SubmissionError('Ingredient not found', status_code=404)
    if not ingredient.item_cd:
        raise SubmissionError(f'Ingredient {ingredient.name} must be registered with KRA first')

    if remaining_quantity is None:
        remaining_quantity = ingredient.current_stock
    remaining_quantity = to_decimal(remaining_quantity)
    if remaining_quantity < 0:
        raise SubmissionError('Remaining quantity cannot be negative')

    headers = get_device_headers()
    payload = build_stock_master_payload(ingredient, remaining_quantity, headers)
    record = KraTransaction.objects.create(
        transaction_type='stock_master',
        items_data=[{'itemCd': payload['itemCd'], 'rsdQty': payload['rsdQty']}],
        ingredient=ingredient,
        created_by=user,
    )
    response = submit_transaction(record, 'save_stock_master', payload, headers)

    create_audit_log(
        request=request,
        user=user,
        action='kra_stock_master',
        model_name='Ingredient',
        object_id=str(ingredient.id),
        object_name=ingredient.name,
        object_reference=ingredient.item_cd,
        changes={'status': record.status, 'rsdQty': payload['rsdQty']},
    )

    data = {'itemCd': ingredient.item_cd, 'rsdQty': payload['rsdQty']}
    if is_success(response):
        return SubmissionResult(True, 'Stock inventory information saved to KRA successfully', response, record, data)
    return SubmissionResult(False, _failure_message(response, 'KRA stock master save failed'), response, record, data)


# ==================== CUSTOMERS ====================

def register_customer(customer_id, user=None, request=None):
    """Register a customer with the branch (saveBhfCustomer)"""
    try:
        customer = Customer.objects.get(pk=customer_id)
    except Customer.DoesNotExist:
        raise SubmissionError('Customer not found', status_code=404)
    if not customer.kra_pin:
        raise SubmissionError('Customer must have a KRA PIN to be registered with KRA')

    headers = get_device_headers()
    payload = build_customer_payload(customer, headers)
    record = KraTransaction.objects.create(
        transaction_type='customer',
        items_data=[{'custNo': payload['custNo'], 'custTin': payload['custTin'], 'custNm': payload['custNm']}],
        customer=customer,
        created_by=user,
    )

    try:
        response = submit_transaction(record, 'save_bhf_customer', payload, headers)
    except Exception as exc:
        customer.kra_status = 'error'
        customer.kra_error = str(exc)
        customer.save(update_fields=['kra_status', 'kra_error', 'updated_at'])
        raise

    success = is_success(response)
    if success:
        customer.kra_status = 'ok'
        customer.kra_error = ''
        customer.kra_customer_no = payload['custNo'] or ''
    else:
        customer.kra_status = 'error'
        customer.kra_error = _failure_message(response, 'KRA customer registration failed')
    customer.save(update_fields=['kra_status', 'kra_error', 'kra_customer_no', 'updated_at'])

    create_audit_log(
        request=request,
        user=user,
        action='kra_customer',
        model_name='Customer',
        object_id=str(customer.id),
        object_name=customer.name,
        object_reference=customer.kra_pin,
        changes={'status': record.status, 'custNo': payload['custNo']},
    )

    data = {'custNo': payload['custNo'], 'custTin': customer.kra_pin}
    if success:
        return SubmissionResult(True, 'Customer sent to KRA successfully', response, record, data)
    return SubmissionResult(False, customer.kra_error, response, record, data)


# ==================== LOOKUPS ====================

# kind -> (endpoint, list key in the response data)
REFERENCE_LISTS = {
    'code_list': ('select_code_list', 'clsList'),
    'item_classification_list': ('select_item_class_list', 'itemClsList'),
    'notices': ('select_notices', 'noticeList'),
}
DEFAULT_LAST_REQUEST_DT = '20200101000000'
REFERENCE_CACHE_TIMEOUT = 60 * 60


def fetch_reference_list(kind, last_request_at=None, user=None, request=None):
    """
    Read a KRA reference list (codes, item classes or notices).

    Lookups are not recorded as transactions. Successful answers are cached
    per kind and ``lastReqDt``; resultCd 001 means nothing changed and
    returns an empty list.
    """
    try:
        endpoint, list_key = REFERENCE_LISTS[kind]
    except KeyError:
        raise SubmissionError(f'Unknown reference list: {kind}')

    last_request_at = last_request_at or DEFAULT_LAST_REQUEST_DT
    cache_key = f'kra:reference:{kind}:{last_request_at}'
    cached = cache.get(cache_key)
    if cached is not None:
        return SubmissionResult(True, f'{kind} loaded from cache', None, None, cached)

    headers = get_device_headers()
    payload = build_lookup_payload(last_request_at, headers)
    response = get_client().post(endpoint, payload, headers)

    result_code = response.get('resultCd')
    if result_code not in (SUCCESS_CODE, NO_RESULTS_CODE):
        return SubmissionResult(False, _failure_message(response, f'KRA {kind} request failed'), response)

    entries = (response.get('data') or {}).get(list_key) or []
    data = {list_key: entries, 'count': len(entries), 'lastReqDt': last_request_at}
    cache.set(cache_key, data, REFERENCE_CACHE_TIMEOUT)
    logger.info(f"Fetched {len(entries)} entries from KRA {kind}")
    return SubmissionResult(True, f'{kind} fetched successfully', None, None, data)


# ==================== STATISTICS ====================

def transaction_statistics(queryset=None):
    """Counts by type, status and result code plus the success rate (percent)"""
    queryset = KraTransaction.objects.all() if queryset is None else queryset
    total = queryset.count()

    def counts(field, base=queryset):
        rows = base.values(field).annotate(count=Count('id')).order_by(field)
        return {row[field]: row['count'] for row in rows}

    by_status = counts('status')
    success_rate = round(by_status.get('success', 0) / total * 100, 2) if total else 0
    return {
        'total': total,
        'by_type': counts('transaction_type'),
        'by_status': by_status,
        'by_result_code': counts('result_code', queryset.exclude(result_code='')),
        'success_rate': success_rate,
    }
