import re

from rest_framework import serializers
from .models import Supplier, Customer

# KRA PINs: letter, nine digits, letter (e.g. P051402944X)
KRA_PIN_PATTERN = re.compile(r'^[A-Z]\d{9}[A-Z]$')


def validate_kra_pin(value):
    if not value:
        return value
    value = value.strip().upper()
    if not KRA_PIN_PATTERN.match(value):
        raise serializers.ValidationError('Enter a valid KRA PIN (e.g. P051402944X).')
    return value


class SupplierSerializer(serializers.ModelSerializer):
    purchase_count = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'code', 'tin', 'bhf_id', 'phone', 'email', 'address',
                  'contact_person', 'is_active', 'purchase_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_purchase_count(self, obj):
        return obj.purchases.count()

    def validate_tin(self, value):
        return validate_kra_pin(value)


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'kra_pin', 'phone', 'email', 'address', 'is_active',
                  'kra_status', 'kra_error', 'kra_customer_no', 'created_at', 'updated_at']
        read_only_fields = ['kra_status', 'kra_error', 'kra_customer_no', 'created_at', 'updated_at']

    def validate_kra_pin(self, value):
        return validate_kra_pin(value) or None
