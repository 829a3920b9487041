import uuid
from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers
from .models import Purchase, PurchaseItem
from etims_pos.catalog.models import Ingredient


def generate_purchase_number():
    purchase_number = f"PUR-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    # Ensure uniqueness
    while Purchase.objects.filter(purchase_number=purchase_number).exists():
        purchase_number = f"PUR-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
    return purchase_number


def create_purchase_items(purchase, items_data):
    """Create purchase lines from raw request items and receive them into stock"""
    for item_data in items_data:
        ingredient_id = item_data.get('ingredient')
        if not ingredient_id:
            raise serializers.ValidationError({'items': 'Ingredient is required for purchase item'})

        try:
            quantity = Decimal(str(item_data.get('quantity', 0)))
            unit_price = Decimal(str(item_data.get('unit_price', 0)))
        except (ArithmeticError, ValueError):
            raise serializers.ValidationError({'items': 'Quantity and unit price must be numbers'})

        if quantity <= 0:
            raise serializers.ValidationError({'items': f'Quantity must be greater than 0. Got {quantity}.'})
        if unit_price < 0:
            raise serializers.ValidationError({'items': f'Unit price cannot be negative. Got {unit_price}.'})

        try:
            ingredient = Ingredient.objects.get(id=ingredient_id)
        except Ingredient.DoesNotExist:
            raise serializers.ValidationError({'items': f'Ingredient with id {ingredient_id} does not exist'})

        PurchaseItem.objects.create(
            purchase=purchase,
            ingredient=ingredient,
            quantity=quantity,
            unit_price=unit_price,
        )

        # Only finalized purchases move stock
        if purchase.status == 'finalized':
            ingredient.current_stock += quantity
            ingredient.save(update_fields=['current_stock', 'updated_at'])


def adjust_purchase_stock(purchase, direction):
    """Add (direction=1) or remove (direction=-1) the purchase lines from ingredient stock"""
    for item in purchase.items.select_related('ingredient'):
        item.ingredient.current_stock += direction * item.quantity
        item.ingredient.save(update_fields=['current_stock', 'updated_at'])


class PurchaseItemSerializer(serializers.ModelSerializer):
    ingredient_name = serializers.CharField(source='ingredient.name', read_only=True)
    ingredient_unit = serializers.CharField(source='ingredient.unit', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseItem
        fields = ['id', 'ingredient', 'ingredient_name', 'ingredient_unit', 'quantity', 'unit_price', 'line_total']

    def get_line_total(self, obj):
        return str(obj.get_line_total())


class PurchaseSerializer(serializers.ModelSerializer):
    items = PurchaseItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    purchase_number = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    subtotal = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()

    class Meta:
        model = Purchase
        fields = [
            'id', 'purchase_number', 'supplier', 'supplier_name', 'supplier_invoice_no', 'purchase_date',
            'payment_type', 'confirmed_at', 'warehouse_date', 'total_tax_amount', 'status', 'notes',
            'kra_status', 'kra_invoice_no', 'created_by', 'created_at', 'updated_at',
            'items', 'subtotal', 'total'
        ]
        read_only_fields = ['kra_status', 'kra_invoice_no', 'created_by', 'created_at', 'updated_at']

    def get_subtotal(self, obj):
        return str(obj.get_subtotal())

    def get_total(self, obj):
        return str(obj.get_total())

    def validate_total_tax_amount(self, value):
        if value < 0:
            raise serializers.ValidationError('Total tax amount cannot be negative.')
        return value

    def create(self, validated_data):
        if not validated_data.get('purchase_number'):
            validated_data['purchase_number'] = generate_purchase_number()

        items_data = self.context.get('items_data') or []
        with transaction.atomic():
            purchase = super().create(validated_data)
            create_purchase_items(purchase, items_data)
        return purchase

    def update(self, instance, validated_data):
        if instance.kra_status == 'ok':
            raise serializers.ValidationError('Purchase has already been submitted to KRA and cannot be changed.')

        items_data = self.context.get('items_data')
        was_finalized = instance.status == 'finalized'
        will_be_finalized = validated_data.get('status', instance.status) == 'finalized'

        with transaction.atomic():
            # Take back what the old lines received when they are replaced or the purchase leaves finalized
            if was_finalized and (items_data is not None or not will_be_finalized):
                adjust_purchase_stock(instance, -1)

            purchase = super().update(instance, validated_data)

            if items_data is not None:
                purchase.items.all().delete()
                create_purchase_items(purchase, items_data)
            elif will_be_finalized and not was_finalized:
                adjust_purchase_stock(purchase, 1)
        return purchase
