from django.contrib import admin
from .models import KraTransaction, DeviceCredential, SequenceCounter


@admin.register(KraTransaction)
class KraTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'transaction_type', 'invoice_no', 'status', 'result_code', 'attempt', 'total_amount', 'created_at']
    list_filter = ['transaction_type', 'status', 'created_at']
    search_fields = ['invoice_no', 'result_code', 'result_message', 'error_message']
    readonly_fields = ['request_payload', 'response_data', 'items_data', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'


@admin.register(DeviceCredential)
class DeviceCredentialAdmin(admin.ModelAdmin):
    list_display = ['tin', 'bhf_id', 'dvc_id', 'sdc_id', 'mrc_no', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['tin', 'dvc_id', 'sdc_id', 'mrc_no']
    readonly_fields = ['kra_response', 'created_at', 'updated_at']


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ['name', 'last_value', 'updated_at']
    readonly_fields = ['updated_at']
