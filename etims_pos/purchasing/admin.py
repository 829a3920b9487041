from django.contrib import admin
from .models import Purchase, PurchaseItem


class PurchaseItemInline(admin.TabularInline):
    model = PurchaseItem
    extra = 0
    autocomplete_fields = ['ingredient']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ['purchase_number', 'supplier', 'supplier_invoice_no', 'purchase_date', 'status', 'kra_status', 'created_at']
    list_filter = ['status', 'kra_status', 'payment_type', 'purchase_date']
    search_fields = ['purchase_number', 'supplier__name', 'supplier_invoice_no']
    readonly_fields = ['kra_status', 'kra_invoice_no', 'created_at', 'updated_at']
    inlines = [PurchaseItemInline]
