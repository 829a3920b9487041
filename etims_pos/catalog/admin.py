from django.contrib import admin
from .models import Ingredient, Recipe, RecipeComponent


@admin.register(Ingredient)
class IngredientAdmin(admin.ModelAdmin):
    list_display = ['name', 'unit', 'category', 'cost_per_unit', 'current_stock', 'tax_ty_cd', 'item_cd', 'kra_status']
    list_filter = ['kra_status', 'category', 'tax_ty_cd']
    search_fields = ['name', 'item_cd', 'category']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']


class RecipeComponentInline(admin.TabularInline):
    model = RecipeComponent
    extra = 0
    autocomplete_fields = ['ingredient']


@admin.register(Recipe)
class RecipeAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'tax_ty_cd', 'item_cd', 'kra_status', 'kra_composition_status', 'is_active']
    list_filter = ['kra_status', 'kra_composition_status', 'category', 'is_active']
    search_fields = ['name', 'item_cd']
    ordering = ['name']
    inlines = [RecipeComponentInline]
    readonly_fields = ['kra_composition_no', 'created_at', 'updated_at']
