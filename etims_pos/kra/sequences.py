"""
Number allocation for eTIMS documents.

Each named sequence keeps its last issued value in a ``SequenceCounter`` row.
Allocation locks that row, so concurrent requests never share a number, and
the result is never lower than what the backing table already contains.
"""
import logging
import re

from django.db import transaction
from django.db.models import Max

from etims_pos.catalog.models import Ingredient, Recipe
from etims_pos.pos.models import SalesInvoice
from etims_pos.purchasing.models import Purchase
from .models import KraTransaction, SequenceCounter

logger = logging.getLogger(__name__)

SALES_INVOICE = 'sales_invoice'
PURCHASE_INVOICE = 'purchase_invoice'
ITEM_COMPOSITION = 'item_composition'
STOCK_IO = 'stock_io'
ITEM_CODE = 'item_code'

ITEM_CODE_PREFIX = 'KE2NTBA'
ITEM_CODE_RE = re.compile(r'^KE2NTBA(\d{7})$')


def allocate_next_number(name, queryset=None, field=None, floor=0):
    """
    Return the next number for ``name``.

    The result is one more than the largest of the last issued value, the
    maximum of ``field`` over ``queryset`` and ``floor``; ``1`` when all are
    empty. Database errors propagate to the caller.
    """
    with transaction.atomic():
        counter, _ = SequenceCounter.objects.select_for_update().get_or_create(name=name)
        current = counter.last_value

        if queryset is not None and field:
            table_max = queryset.aggregate(value=Max(field))['value'] or 0
            current = max(current, int(table_max))

        current = max(current, int(floor or 0))
        counter.last_value = current + 1
        counter.save(update_fields=['last_value', 'updated_at'])

    logger.debug(f"Allocated {name} number {counter.last_value}")
    return counter.last_value


def max_item_code_number():
    """Largest numeric suffix of KE2NTBA item codes across ingredients and recipes"""
    highest = 0
    for model in (Ingredient, Recipe):
        codes = model.objects.filter(item_cd__startswith=ITEM_CODE_PREFIX).values_list('item_cd', flat=True)
        for code in codes:
            match = ITEM_CODE_RE.match(code)
            if match:
                highest = max(highest, int(match.group(1)))
    return highest


def next_sales_invoice_number():
    # Sales and refunds share one receipt series
    return allocate_next_number(SALES_INVOICE, SalesInvoice.objects.all(), 'invc_no')


def next_purchase_invoice_number():
    return allocate_next_number(PURCHASE_INVOICE, Purchase.objects.all(), 'kra_invoice_no')


def next_composition_number():
    return allocate_next_number(
        ITEM_COMPOSITION,
        KraTransaction.objects.filter(transaction_type='item_composition'),
        'invoice_no',
    )


def next_sar_number():
    return allocate_next_number(
        STOCK_IO,
        KraTransaction.objects.filter(transaction_type='stock_io'),
        'invoice_no',
    )


def next_item_code():
    number = allocate_next_number(ITEM_CODE, floor=max_item_code_number())
    return f"{ITEM_CODE_PREFIX}{number:07d}"


def table_maximum(name):
    """Highest number already used by the table backing ``name``"""
    if name == ITEM_CODE:
        return max_item_code_number()

    sources = {
        SALES_INVOICE: (SalesInvoice.objects.all(), 'invc_no'),
        PURCHASE_INVOICE: (Purchase.objects.all(), 'kra_invoice_no'),
        ITEM_COMPOSITION: (KraTransaction.objects.filter(transaction_type='item_composition'), 'invoice_no'),
        STOCK_IO: (KraTransaction.objects.filter(transaction_type='stock_io'), 'invoice_no'),
    }
    queryset, field = sources[name]
    return int(queryset.aggregate(value=Max(field))['value'] or 0)


SEQUENCE_NAMES = (SALES_INVOICE, PURCHASE_INVOICE, ITEM_COMPOSITION, STOCK_IO, ITEM_CODE)


def sync_sequences(names=SEQUENCE_NAMES, force=False):
    """
    Raise each counter to its table maximum; returns {name: (old, new)}.

    A counter is never moved below its last issued value unless ``force`` is
    set; numbers burned by failed or deleted submissions stay burned.
    """
    results = {}
    with transaction.atomic():
        for name in names:
            counter, _ = SequenceCounter.objects.select_for_update().get_or_create(name=name)
            new_value = sync_target(counter.last_value, table_maximum(name), force)
            results[name] = (counter.last_value, new_value)
            if counter.last_value != new_value:
                counter.last_value = new_value
                counter.save(update_fields=['last_value', 'updated_at'])
                logger.info(f"Sequence {name} set to {new_value}")
    return results


def sync_target(last_value, table_max, force=False):
    if force:
        return table_max
    return max(last_value, table_max)
