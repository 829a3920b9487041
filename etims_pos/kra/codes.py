"""Static translations from free-form POS values to eTIMS codes"""
from decimal import Decimal

DEFAULT_UNIT_CODE = 'U'
DEFAULT_CATEGORY_CODE = '5059690800'
DEFAULT_PAYMENT_CODE = '01'
DEFAULT_TAX_TYPE = 'B'

UNIT_CODES = {
    'bag': 'BG',
    'box': 'BOX',
    'can': 'CA',
    'dozen': 'DZ',
    'gram': 'GRM',
    'g': 'GRM',
    'kg': 'KG',
    'kilogram': 'KG',
    'kilo gramme': 'KG',
    'litre': 'L',
    'liter': 'L',
    'l': 'L',
    'milligram': 'MGM',
    'mg': 'MGM',
    'packet': 'PA',
    'set': 'SET',
    'piece': 'U',
    'pieces': 'U',
    'item': 'U',
    'number': 'U',
    'pcs': 'U',
    'u': 'U',
    'portion': 'U',
    'serving': 'U',
    'plate': 'U',
    'bowl': 'U',
}

CATEGORY_CODES = {
    'meats': '73131600',
    'drinks': '50200000',
    'vegetables': '50400000',
    'package': '24120000',
    'dairy': '50130000',
    'grains': '50130000',
    'oil': '50150000',
    'fruits': '50300000',
    'canned': '50460000',
    'nuts': '50100000',
}

PAYMENT_CODES = {
    'cash': '01',
    'credit': '02',
    'cash_credit': '03',
    'bank_check': '04',
    'card': '05',
    'mpesa': '06',
    'mobile': '06',
    'other': '07',
}

# Percent
TAX_RATES = {
    'A': 0,
    'B': 16,
    'C': 0,
    'D': 0,
    'E': 8,
}

INCOMING_STOCK_CODES = {
    'import': '01',
    'purchase': '02',
    'return': '03',
    'processing': '05',
    'adjustment': '06',
}
DEFAULT_INCOMING_STOCK_CODE = '04'

OUTGOING_STOCK_CODES = {
    'sale': '11',
    'return': '12',
    'processing': '14',
    'discarding': '15',
    'adjustment': '16',
}
DEFAULT_OUTGOING_STOCK_CODE = '13'


def _normalize(value):
    return str(value or '').strip().lower()


def map_unit_code(unit):
    return UNIT_CODES.get(_normalize(unit), DEFAULT_UNIT_CODE)


def map_category_code(category):
    return CATEGORY_CODES.get(_normalize(category), DEFAULT_CATEGORY_CODE)


def map_payment_type(method):
    value = str(method or '').strip()
    if value in PAYMENT_CODES.values():
        return value
    return PAYMENT_CODES.get(value.lower(), DEFAULT_PAYMENT_CODE)


def normalize_tax_type(tax_type):
    value = str(tax_type or '').strip().upper()
    return value if value in TAX_RATES else DEFAULT_TAX_TYPE


def tax_rate(tax_type):
    """Tax rate in percent for an eTIMS tax type; unknown types use B"""
    return Decimal(TAX_RATES[normalize_tax_type(tax_type)])


def stock_movement_code(quantity_change, context=None):
    """sarTyCd for a stock movement: incoming when quantity_change > 0"""
    context = _normalize(context)
    if quantity_change > 0:
        return INCOMING_STOCK_CODES.get(context, DEFAULT_INCOMING_STOCK_CODE)
    return OUTGOING_STOCK_CODES.get(context, DEFAULT_OUTGOING_STOCK_CODE)
