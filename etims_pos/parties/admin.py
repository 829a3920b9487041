from django.contrib import admin
from .models import Supplier, Customer


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'tin', 'bhf_id', 'phone', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'code', 'tin', 'phone', 'email']
    ordering = ['name']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'kra_pin', 'phone', 'email', 'kra_status', 'is_active', 'created_at']
    list_filter = ['is_active', 'kra_status', 'created_at']
    search_fields = ['name', 'kra_pin', 'phone', 'email']
    ordering = ['name']
