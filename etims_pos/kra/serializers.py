from rest_framework import serializers
from .models import KraTransaction, DeviceCredential


class KraTransactionSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = KraTransaction
        fields = [
            'id', 'transaction_type', 'invoice_no', 'status', 'items_data', 'total_amount', 'tax_amount',
            'request_payload', 'response_data', 'result_code', 'result_message', 'error_message', 'attempt',
            'purchase', 'sales_invoice', 'recipe', 'ingredient', 'customer', 'created_by', 'created_by_username',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class KraTransactionListSerializer(serializers.ModelSerializer):
    """List view without the raw request/response bodies"""

    class Meta:
        model = KraTransaction
        fields = [
            'id', 'transaction_type', 'invoice_no', 'status', 'total_amount', 'tax_amount',
            'result_code', 'result_message', 'error_message', 'attempt',
            'purchase', 'sales_invoice', 'recipe', 'ingredient', 'customer', 'created_at'
        ]
        read_only_fields = fields


class DeviceCredentialSerializer(serializers.ModelSerializer):
    cmc_key = serializers.CharField(write_only=True)
    cmc_key_hint = serializers.SerializerMethodField()

    class Meta:
        model = DeviceCredential
        fields = [
            'id', 'tin', 'bhf_id', 'cmc_key', 'cmc_key_hint', 'dvc_id', 'sdc_id', 'mrc_no', 'dvc_srl_no',
            'is_active', 'kra_response', 'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def get_cmc_key_hint(self, obj):
        if not obj.cmc_key:
            return ''
        return f"...{obj.cmc_key[-4:]}"

    def validate_tin(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError('TIN is required.')
        return value

    def validate_bhf_id(self, value):
        value = value.strip()
        if not value.isdigit() or len(value) != 2:
            raise serializers.ValidationError('Branch id must be two digits, e.g. "00".')
        return value


# Request bodies of the submission endpoints

class PurchaseSubmissionSerializer(serializers.Serializer):
    purchase_id = serializers.IntegerField()


class SaleSubmissionSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    payment_method = serializers.CharField()
    customer_id = serializers.IntegerField(required=False, allow_null=True)


class RetrySaleSerializer(serializers.Serializer):
    sales_invoice_id = serializers.IntegerField()


class RefundItemSerializer(serializers.Serializer):
    recipe_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)


class RefundSerializer(serializers.Serializer):
    sales_invoice_id = serializers.IntegerField()
    refund_type = serializers.ChoiceField(choices=['full', 'partial', 'items'], default='full')
    refund_percentage = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, allow_null=True)
    refund_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    items = RefundItemSerializer(many=True, required=False)

    def validate(self, attrs):
        if attrs.get('refund_type') == 'items' and not attrs.get('items'):
            raise serializers.ValidationError({'items': 'Select at least one item to refund.'})
        return attrs


class RegisterItemSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=['ingredient', 'recipe'])
    item_id = serializers.IntegerField()


class ItemCompositionSerializer(serializers.Serializer):
    recipe_id = serializers.IntegerField()


class StockMovementItemSerializer(serializers.Serializer):
    ingredient_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)


class StockIOSerializer(serializers.Serializer):
    items = StockMovementItemSerializer(many=True, allow_empty=False)
    context = serializers.CharField(required=False, allow_blank=True, default='')


class StockMasterSerializer(serializers.Serializer):
    ingredient_id = serializers.IntegerField()
    rsd_qty = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, allow_null=True)


class CustomerRegistrationSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()


class ReferenceListSerializer(serializers.Serializer):
    last_req_dt = serializers.RegexField(
        r'^\d{14}$', required=False,
        error_messages={'invalid': 'Use the yyyyMMddHHmmss format, e.g. 20240101000000.'},
    )
