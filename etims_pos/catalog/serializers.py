from decimal import Decimal

from django.db import transaction
from rest_framework import serializers
from .models import Ingredient, Recipe, RecipeComponent


class IngredientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ingredient
        fields = ['id', 'name', 'description', 'unit', 'category', 'cost_per_unit', 'current_stock',
                  'tax_ty_cd', 'item_cd', 'item_cls_cd', 'kra_status', 'created_at', 'updated_at']
        # KRA codes are issued by the register-item endpoint only
        read_only_fields = ['item_cd', 'item_cls_cd', 'kra_status', 'created_at', 'updated_at']

    def validate_cost_per_unit(self, value):
        if value < 0:
            raise serializers.ValidationError('Cost per unit cannot be negative.')
        return value


class RecipeComponentSerializer(serializers.ModelSerializer):
    ingredient_name = serializers.CharField(source='ingredient.name', read_only=True)
    ingredient_unit = serializers.CharField(source='ingredient.unit', read_only=True)
    ingredient_item_cd = serializers.CharField(source='ingredient.item_cd', read_only=True)

    class Meta:
        model = RecipeComponent
        fields = ['id', 'ingredient', 'ingredient_name', 'ingredient_unit', 'ingredient_item_cd', 'quantity']

    def validate_quantity(self, value):
        if value <= Decimal('0'):
            raise serializers.ValidationError('Quantity must be a positive number.')
        return value


class RecipeSerializer(serializers.ModelSerializer):
    components = RecipeComponentSerializer(many=True, required=False)
    cost = serializers.SerializerMethodField()

    class Meta:
        model = Recipe
        fields = ['id', 'name', 'description', 'category', 'unit', 'price', 'tax_ty_cd', 'is_active',
                  'item_cd', 'item_cls_cd', 'kra_status', 'kra_composition_status', 'kra_composition_no',
                  'components', 'cost', 'created_at', 'updated_at']
        read_only_fields = ['item_cd', 'item_cls_cd', 'kra_status', 'kra_composition_status',
                            'kra_composition_no', 'created_at', 'updated_at']

    def get_cost(self, obj):
        return str(obj.get_cost())

    def validate_price(self, value):
        if value <= Decimal('0'):
            raise serializers.ValidationError('Price must be greater than zero.')
        return value

    def validate_components(self, value):
        ingredient_ids = [component['ingredient'].id for component in value]
        if len(ingredient_ids) != len(set(ingredient_ids)):
            raise serializers.ValidationError('Each ingredient may appear only once in a recipe.')
        return value

    def create(self, validated_data):
        components_data = validated_data.pop('components', [])
        with transaction.atomic():
            recipe = Recipe.objects.create(**validated_data)
            for component in components_data:
                RecipeComponent.objects.create(recipe=recipe, **component)
        return recipe

    def update(self, instance, validated_data):
        components_data = validated_data.pop('components', None)
        with transaction.atomic():
            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            instance.save()

            if components_data is not None:
                instance.components.all().delete()
                for component in components_data:
                    RecipeComponent.objects.create(recipe=instance, **component)
                # A changed composition must be re-sent to KRA
                if instance.kra_composition_status != 'pending':
                    instance.kra_composition_status = 'pending'
                    instance.save(update_fields=['kra_composition_status', 'updated_at'])
        return instance
