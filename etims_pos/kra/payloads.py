"""
Pure builders for eTIMS request bodies.

Amounts are computed with ``Decimal`` and emitted as floats rounded to two
places, which is what the eTIMS JSON schema expects.
"""
import os
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.utils import timezone

from .codes import (
    TAX_RATES, map_category_code, map_payment_type, map_unit_code, normalize_tax_type, tax_rate,
)

TWO_PLACES = Decimal('0.01')
QUANTITY_PLACES = Decimal('0.001')
ZERO = Decimal('0.00')
TAX_TYPES = ('A', 'B', 'C', 'D', 'E')
REGISTRAR_MAX_LENGTH = 20
PACKAGE_UNIT_CODE = 'NT'
WALK_IN_CUSTOMER = 'Walk-in Customer'


def to_decimal(value):
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def quantize(value):
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def as_amount(value):
    return float(quantize(value))


def as_quantity(value):
    return float(to_decimal(value))


def quantize_quantity(value):
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def format_date(value=None):
    """YYYYMMDD in local (Africa/Nairobi) time"""
    if value is None:
        value = timezone.now()
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.strftime('%Y%m%d')
    if isinstance(value, date):
        return value.strftime('%Y%m%d')
    return ''


def format_datetime(value=None):
    """YYYYMMDDHHMMSS in local (Africa/Nairobi) time"""
    if value is None:
        value = timezone.now()
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%Y%m%d%H%M%S')


def registrar_name(name=None):
    name = name or getattr(settings, 'KRA_REGISTRAR_NAME', os.getenv('KRA_REGISTRAR_NAME', 'Restaurant POS'))
    return name[:REGISTRAR_MAX_LENGTH]


def registrar_fields(name=None):
    name = registrar_name(name)
    return {'regrId': name, 'regrNm': name, 'modrId': name, 'modrNm': name}


def allocate_tax(line_amounts, total_taxable, total_tax):
    """
    Split ``total_tax`` across lines in proportion to each line's amount.

    Each share is ``(amount / total_taxable) * total_tax`` rounded to two
    places. When ``total_taxable`` is zero every share is zero.
    """
    total_taxable = to_decimal(total_taxable)
    total_tax = to_decimal(total_tax)
    if total_taxable == 0:
        return [ZERO for _ in line_amounts]
    return [quantize(to_decimal(amount) / total_taxable * total_tax) for amount in line_amounts]


def allocate_proportionally(line_amounts, total):
    """Split ``total`` across lines in proportion to their share of the line sum"""
    line_sum = sum((to_decimal(amount) for amount in line_amounts), ZERO)
    return allocate_tax(line_amounts, line_sum, total)


def tax_breakdown(lines):
    """taxblAmtA..E, taxRtA..E and taxAmtA..E for a list of itemList entries"""
    taxable = {tax_type: ZERO for tax_type in TAX_TYPES}
    tax = {tax_type: ZERO for tax_type in TAX_TYPES}
    for line in lines:
        tax_type = normalize_tax_type(line.get('taxTyCd'))
        taxable[tax_type] += to_decimal(line.get('taxblAmt'))
        tax[tax_type] += to_decimal(line.get('taxAmt'))

    breakdown = {}
    for tax_type in TAX_TYPES:
        breakdown[f'taxblAmt{tax_type}'] = as_amount(taxable[tax_type])
    for tax_type in TAX_TYPES:
        breakdown[f'taxRt{tax_type}'] = TAX_RATES[tax_type]
    for tax_type in TAX_TYPES:
        breakdown[f'taxAmt{tax_type}'] = as_amount(tax[tax_type])
    return breakdown


def _sum(lines, key):
    return sum((to_decimal(line.get(key)) for line in lines), ZERO)


# ==================== PURCHASES ====================

def build_purchase_lines(items, total_tax):
    """itemList for insertTrnsPurchase; tax comes from the bill total"""
    line_amounts = [to_decimal(item.quantity) * to_decimal(item.unit_price) for item in items]
    total_taxable = sum(line_amounts, ZERO)
    taxes = allocate_tax(line_amounts, total_taxable, total_tax)

    lines = []
    for seq, (item, amount, tax) in enumerate(zip(items, line_amounts, taxes), start=1):
        ingredient = item.ingredient
        supply = quantize(amount)
        lines.append({
            'itemSeq': seq,
            'itemCd': ingredient.item_cd or '',
            'itemClsCd': ingredient.item_cls_cd or map_category_code(ingredient.category),
            'itemNm': ingredient.name,
            'bcd': None,
            'spplrItemClsCd': None,
            'spplrItemCd': None,
            'spplrItemNm': None,
            'pkgUnitCd': PACKAGE_UNIT_CODE,
            'pkg': 1,
            'qtyUnitCd': map_unit_code(ingredient.unit),
            'qty': as_quantity(item.quantity),
            'prc': as_amount(item.unit_price),
            'splyAmt': as_amount(supply),
            'dcRt': 0,
            'dcAmt': 0,
            'taxblAmt': as_amount(supply),
            'taxTyCd': normalize_tax_type(ingredient.tax_ty_cd),
            'taxAmt': as_amount(tax),
            'totAmt': as_amount(supply + tax),
            'itemExprDt': None,
        })
    return lines


def build_purchase_payload(purchase, invoice_no, headers, confirmed_at=None):
    """insertTrnsPurchase body for a supplier bill"""
    items = list(purchase.items.select_related('ingredient'))
    lines = build_purchase_lines(items, purchase.total_tax_amount)
    supplier = purchase.supplier

    total_taxable = _sum(lines, 'taxblAmt')
    total_tax = _sum(lines, 'taxAmt')

    payload = {
        'tin': headers.get('tin'),
        'bhfId': headers.get('bhfId'),
        'invcNo': invoice_no,
        'orgInvcNo': 0,
        'spplrTin': supplier.tin or None,
        'spplrBhfId': supplier.bhf_id or None,
        'spplrNm': supplier.name,
        'spplrInvcNo': purchase.supplier_invoice_no,
        'regTyCd': 'M',
        'pchsTyCd': 'N',
        'rcptTyCd': 'P',
        'pmtTyCd': map_payment_type(purchase.payment_type),
        'pchsSttsCd': '02',
        'cfmDt': format_datetime(confirmed_at or purchase.confirmed_at),
        'pchsDt': format_date(purchase.purchase_date),
        'wrhsDt': format_date(purchase.warehouse_date) if purchase.warehouse_date else '',
        'cnclReqDt': None,
        'cnclDt': None,
        'rfdDt': None,
        'totItemCnt': len(lines),
    }
    payload.update(tax_breakdown(lines))
    payload.update({
        'totTaxblAmt': as_amount(total_taxable),
        'totTaxAmt': as_amount(total_tax),
        'totAmt': as_amount(total_taxable + total_tax),
        'remark': purchase.notes or None,
    })
    payload.update(registrar_fields())
    payload['itemList'] = lines
    return payload


# ==================== SALES ====================

def build_sale_lines(order_items, discount_amount=ZERO):
    """
    itemList for saveTrnsSalesOsdc.

    Menu prices are tax-inclusive. The order discount is spread over the
    lines first, then each line's taxable amount is ``total / (1 + rate)``.
    """
    gross_amounts = [to_decimal(item.quantity) * to_decimal(item.unit_price) for item in order_items]
    discount_amount = to_decimal(discount_amount)
    if discount_amount > 0:
        discounts = allocate_proportionally(gross_amounts, discount_amount)
    else:
        discounts = [ZERO for _ in gross_amounts]

    lines = []
    for seq, (item, gross, discount) in enumerate(zip(order_items, gross_amounts, discounts), start=1):
        recipe = item.recipe
        tax_type = normalize_tax_type(recipe.tax_ty_cd)
        total = quantize(gross - discount)
        taxable = quantize(total / (1 + tax_rate(tax_type) / 100))
        discount_rate = quantize(discount / gross * 100) if gross else ZERO

        lines.append({
            'itemSeq': seq,
            'itemCd': recipe.item_cd or '',
            'itemClsCd': recipe.item_cls_cd or map_category_code(recipe.category),
            'itemNm': item.name,
            'bcd': None,
            'pkgUnitCd': PACKAGE_UNIT_CODE,
            'pkg': 1,
            'qtyUnitCd': map_unit_code(recipe.unit),
            'qty': as_quantity(item.quantity),
            'prc': as_amount(item.unit_price),
            'splyAmt': as_amount(gross),
            'dcRt': as_amount(discount_rate),
            'dcAmt': as_amount(discount),
            'isrccCd': None,
            'isrccNm': None,
            'isrcRt': None,
            'isrcAmt': None,
            'taxTyCd': tax_type,
            'taxblAmt': as_amount(taxable),
            'taxAmt': as_amount(total - taxable),
            'totAmt': as_amount(total),
        })
    return lines


def build_sale_payload(invoice, lines, headers, sold_at=None):
    """saveTrnsSalesOsdc body for a normal sale (receipt type S)"""
    sold_at = sold_at or timezone.now()
    confirmed = format_datetime(sold_at)
    customer_tin = invoice.cust_tin or None

    payload = {
        'tin': headers.get('tin'),
        'bhfId': headers.get('bhfId'),
        'trdInvcNo': invoice.trd_invc_no or str(invoice.invc_no),
        'invcNo': invoice.invc_no,
        'orgInvcNo': 0,
        'custTin': customer_tin,
        'custNm': invoice.cust_nm or WALK_IN_CUSTOMER,
        'salesTyCd': 'N',
        'rcptTyCd': 'S',
        'pmtTyCd': map_payment_type(invoice.payment_method),
        'salesSttsCd': '02',
        'cfmDt': confirmed,
        'salesDt': format_date(sold_at),
        'stockRlsDt': confirmed,
        'cnclReqDt': None,
        'cnclDt': None,
        'rfdDt': None,
        'rfdRsnCd': None,
        'totItemCnt': len(lines),
    }
    payload.update(tax_breakdown(lines))
    payload.update({
        'totTaxblAmt': as_amount(_sum(lines, 'taxblAmt')),
        'totTaxAmt': as_amount(_sum(lines, 'taxAmt')),
        'totAmt': as_amount(_sum(lines, 'totAmt')),
        'prchrAcptcYn': 'N',
        'remark': None,
    })
    payload.update(registrar_fields())
    payload['receipt'] = {
        'custTin': customer_tin,
        'custMblNo': None,
        'rptNo': None,
        'rcptPbctDt': confirmed,
        'trdeNm': None,
        'adrs': None,
        'topMsg': None,
        'btmMsg': None,
        'prchrAcptcYn': 'N',
    }
    payload['itemList'] = lines
    return payload


def _refund_amount(value, multiplier):
    return as_amount(-(to_decimal(value) * multiplier))


def build_refund_payload(original, refund_invoice_no, multiplier=1, org_invc_no=None, refunded_at=None,
                         line_multipliers=None):
    """
    Credit note (receipt type R) for a previously sent sale payload.

    Each line is scaled by ``multiplier``, or by its entry in
    ``line_multipliers`` (keyed by itemSeq) when that is given, in which case
    lines without an entry are left out. Quantities are scaled with the
    amounts so ``qty * prc`` still matches ``splyAmt``, and every amount is
    negated. ``orgInvcNo`` is the original receipt number.
    """
    multiplier = to_decimal(multiplier)
    refunded_at = refunded_at or timezone.now()
    confirmed = format_datetime(refunded_at)

    lines = []
    for line in original.get('itemList', []):
        if line_multipliers is None:
            line_multiplier = multiplier
        else:
            line_multiplier = to_decimal(line_multipliers.get(line.get('itemSeq')))
        if line_multiplier <= 0:
            continue
        refunded = dict(line)
        refunded['itemSeq'] = len(lines) + 1
        refunded['qty'] = as_quantity(quantize_quantity(to_decimal(line.get('qty')) * line_multiplier))
        refunded['prc'] = as_amount(-to_decimal(line.get('prc')))
        for key in ('splyAmt', 'dcAmt', 'taxblAmt', 'taxAmt', 'totAmt'):
            refunded[key] = _refund_amount(line.get(key), line_multiplier)
        lines.append(refunded)

    if line_multipliers is None:
        totals = {
            'totTaxblAmt': _refund_amount(original.get('totTaxblAmt'), multiplier),
            'totTaxAmt': _refund_amount(original.get('totTaxAmt'), multiplier),
            'totAmt': _refund_amount(original.get('totAmt'), multiplier),
        }
        remark = (
            f"Partial refund of invoice {original.get('invcNo')} ({multiplier * 100:.1f}%)"
            if multiplier < 1 else f"Refund of invoice {original.get('invcNo')}"
        )
    else:
        totals = {
            'totTaxblAmt': as_amount(_sum(lines, 'taxblAmt')),
            'totTaxAmt': as_amount(_sum(lines, 'taxAmt')),
            'totAmt': as_amount(_sum(lines, 'totAmt')),
        }
        remark = f"Refund of {len(lines)} item(s) from invoice {original.get('invcNo')}"

    payload = dict(original)
    payload.update({
        'trdInvcNo': f"REFUND{refund_invoice_no:06d}",
        'invcNo': refund_invoice_no,
        'orgInvcNo': org_invc_no if org_invc_no is not None else original.get('invcNo', 0),
        'rcptTyCd': 'R',
        'cfmDt': confirmed,
        'salesDt': format_date(refunded_at),
        'stockRlsDt': confirmed,
        'rfdDt': confirmed,
        'totItemCnt': len(lines),
        'remark': remark,
        **totals,
    })
    payload.update(tax_breakdown(lines))
    payload['receipt'] = dict(original.get('receipt') or {}, rcptPbctDt=confirmed)
    payload['itemList'] = lines
    return payload


# ==================== ITEMS ====================

def build_item_payload(item, item_cd, item_cls_cd, headers=None, default_price=None):
    """saveItem body for an ingredient or recipe"""
    if default_price is None:
        default_price = getattr(item, 'price', None)
        if default_price is None:
            default_price = getattr(item, 'cost_per_unit', ZERO)

    payload = {
        'itemCd': item_cd,
        'itemClsCd': item_cls_cd,
        'itemTyCd': '2',
        'itemNm': item.name,
        'itemStdNm': None,
        'orgnNatCd': 'KE',
        'pkgUnitCd': PACKAGE_UNIT_CODE,
        'qtyUnitCd': map_unit_code(item.unit),
        'taxTyCd': normalize_tax_type(item.tax_ty_cd),
        'btchNo': None,
        'bcd': None,
        'dftPrc': as_amount(default_price),
        'addInfo': None,
        'sftyQty': None,
        'isrcAplcbYn': 'N',
        'useYn': 'Y',
    }
    if headers:
        payload = {'tin': headers.get('tin'), 'bhfId': headers.get('bhfId'), **payload}
    payload.update(registrar_fields(item.name))
    return payload


def build_composition_payload(recipe_item_cd, component, headers=None):
    """saveItemComposition body for one recipe component"""
    payload = {
        'itemCd': recipe_item_cd,
        'cpstItemCd': component.ingredient.item_cd,
        'cpstQty': as_quantity(component.quantity),
    }
    if headers:
        payload = {'tin': headers.get('tin'), 'bhfId': headers.get('bhfId'), **payload}
    payload.update({'regrId': registrar_name(), 'regrNm': registrar_name()})
    return payload


# ==================== STOCK ====================

def build_stock_lines(movements):
    """
    itemList for insertStockIO.

    ``movements`` are ``(ingredient, quantity)`` pairs; amounts use the
    ingredient cost with tax added on top at the ingredient's rate.
    """
    lines = []
    for seq, (ingredient, quantity) in enumerate(movements, start=1):
        quantity = abs(to_decimal(quantity))
        tax_type = normalize_tax_type(ingredient.tax_ty_cd)
        supply = quantize(quantity * to_decimal(ingredient.cost_per_unit))
        tax = quantize(supply * tax_rate(tax_type) / 100)
        lines.append({
            'itemSeq': seq,
            'itemCd': ingredient.item_cd or '',
            'itemClsCd': ingredient.item_cls_cd or map_category_code(ingredient.category),
            'itemNm': ingredient.name,
            'bcd': None,
            'pkgUnitCd': PACKAGE_UNIT_CODE,
            'pkg': 1,
            'qtyUnitCd': map_unit_code(ingredient.unit),
            'qty': as_quantity(quantity),
            'itemExprDt': None,
            'prc': as_amount(ingredient.cost_per_unit),
            'splyAmt': as_amount(supply),
            'totDcAmt': 0,
            'taxblAmt': as_amount(supply),
            'taxTyCd': tax_type,
            'taxAmt': as_amount(tax),
            'totAmt': as_amount(supply + tax),
        })
    return lines


def build_stock_io_payload(sar_no, lines, sar_type_code, headers, occurred_at=None, remark=None):
    """insertStockIO body"""
    payload = {
        'tin': headers.get('tin'),
        'bhfId': headers.get('bhfId'),
        'sarNo': sar_no,
        'orgSarNo': 0,
        'regTyCd': 'M',
        'custTin': None,
        'custNm': None,
        'custBhfId': None,
        'sarTyCd': sar_type_code,
        'ocrnDt': format_date(occurred_at),
        'totItemCnt': len(lines),
        'totTaxblAmt': as_amount(_sum(lines, 'taxblAmt')),
        'totTaxAmt': as_amount(_sum(lines, 'taxAmt')),
        'totAmt': as_amount(_sum(lines, 'totAmt')),
        'remark': remark,
    }
    payload.update(registrar_fields())
    payload['itemList'] = lines
    return payload



def build_stock_master_payload(ingredient, remaining_quantity, headers=None):
    """saveStockMaster body: the quantity left on hand for one item"""
    payload = {
        'itemCd': ingredient.item_cd,
        'rsdQty': as_quantity(quantize_quantity(remaining_quantity)),
    }
    if headers:
        payload = {'tin': headers.get('tin'), 'bhfId': headers.get('bhfId'), **payload}
    payload.update(registrar_fields())
    return payload


# ==================== CUSTOMERS ====================

def customer_number(customer):
    """custNo for saveBhfCustomer: the customer's phone number, else None"""
    phone = (customer.phone or '').strip()
    return phone or None


def build_customer_payload(customer, headers=None):
    """saveBhfCustomer body for a customer with a KRA PIN"""
    payload = {
        'custNo': customer_number(customer),
        'custTin': customer.kra_pin,
        'custNm': customer.name,
        'adrs': customer.address or None,
        'telNo': customer.phone or None,
        'email': customer.email or None,
        'faxNo': None,
        'useYn': 'Y' if customer.is_active else 'N',
        'remark': None,
    }
    if headers:
        payload = {'tin': headers.get('tin'), 'bhfId': headers.get('bhfId'), **payload}
    payload.update(registrar_fields())
    return payload


# ==================== LOOKUPS ====================

def build_lookup_payload(last_request_at, headers=None):
    """Body for selectCodeList / selectItemClsList / selectNoticeList"""
    if isinstance(last_request_at, datetime):
        last_request_at = format_datetime(last_request_at)
    payload = {'lastReqDt': last_request_at}
    if headers:
        payload = {'tin': headers.get('tin'), 'bhfId': headers.get('bhfId'), **payload}
    return payload
