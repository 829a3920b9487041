import uuid
from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers
from .models import Order, OrderItem, SalesInvoice
from etims_pos.catalog.models import Recipe


def generate_order_number():
    order_number = f"ORD-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    while Order.objects.filter(order_number=order_number).exists():
        order_number = f"ORD-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    return order_number


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'recipe', 'name', 'unit_price', 'quantity', 'line_total']

    def get_line_total(self, obj):
        return str(obj.get_line_total())


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    order_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    subtotal = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()
    kra_status = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_name', 'table_number', 'status',
            'discount_amount', 'notes', 'created_by', 'created_at', 'updated_at',
            'items', 'subtotal', 'total', 'kra_status'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_subtotal(self, obj):
        return str(obj.get_subtotal())

    def get_total(self, obj):
        return str(obj.get_total())

    def get_kra_status(self, obj):
        invoice = obj.sales_invoices.filter(is_refund=False).order_by('-created_at').first()
        return invoice.kra_status if invoice else None

    def validate_discount_amount(self, value):
        if value < 0:
            raise serializers.ValidationError('Discount cannot be negative.')
        return value

    def create(self, validated_data):
        if not validated_data.get('order_number'):
            validated_data['order_number'] = generate_order_number()
        if not validated_data.get('customer_name') and validated_data.get('customer'):
            validated_data['customer_name'] = validated_data['customer'].name

        items_data = self.context.get('items_data') or []
        if not items_data:
            raise serializers.ValidationError({'items': 'An order needs at least one item'})

        with transaction.atomic():
            order = super().create(validated_data)
            for item_data in items_data:
                recipe_id = item_data.get('recipe')
                try:
                    recipe = Recipe.objects.get(id=recipe_id, is_active=True)
                except Recipe.DoesNotExist:
                    raise serializers.ValidationError({'items': f'Recipe with id {recipe_id} does not exist'})

                quantity = Decimal(str(item_data.get('quantity', 1)))
                if quantity <= 0:
                    raise serializers.ValidationError({'items': f'Quantity must be greater than 0. Got {quantity}.'})

                OrderItem.objects.create(
                    order=order,
                    recipe=recipe,
                    name=recipe.name,
                    unit_price=recipe.price,
                    quantity=quantity,
                )
        return order


class SalesInvoiceSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True)
    original_invc_no = serializers.IntegerField(source='original_invoice.invc_no', read_only=True, default=None)

    class Meta:
        model = SalesInvoice
        fields = [
            'id', 'order', 'order_number', 'invc_no', 'org_invc_no', 'trd_invc_no', 'payment_method',
            'customer', 'cust_tin', 'cust_nm', 'total_amount', 'taxable_amount', 'tax_amount',
            'discount_amount', 'kra_status', 'kra_error', 'kra_cur_rcpt_no', 'kra_tot_rcpt_no',
            'kra_intrl_data', 'kra_rcpt_sign', 'kra_sdc_date_time', 'is_refund', 'original_invoice',
            'original_invc_no', 'refund_multiplier', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields
