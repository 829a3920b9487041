from django.contrib import admin
from .models import Order, OrderItem, SalesInvoice


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'table_number', 'customer_name', 'status', 'discount_amount', 'created_by', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'customer_name', 'table_number']
    inlines = [OrderItemInline]


@admin.register(SalesInvoice)
class SalesInvoiceAdmin(admin.ModelAdmin):
    list_display = ['invc_no', 'order', 'payment_method', 'total_amount', 'tax_amount', 'kra_status', 'is_refund', 'created_at']
    list_filter = ['kra_status', 'is_refund', 'payment_method', 'created_at']
    search_fields = ['invc_no', 'cust_nm', 'cust_tin', 'order__order_number']
    readonly_fields = ['kra_cur_rcpt_no', 'kra_tot_rcpt_no', 'kra_intrl_data', 'kra_rcpt_sign',
                       'kra_sdc_date_time', 'created_at', 'updated_at']
