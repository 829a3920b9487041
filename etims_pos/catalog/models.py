from django.db import models
from decimal import Decimal

KRA_STATUS_CHOICES = [
    ('pending', 'Not Registered'),
    ('ok', 'Registered'),
    ('error', 'Registration Failed'),
]

TAX_TYPE_CHOICES = [
    ('A', 'A - Exempt'),
    ('B', 'B - Standard VAT 16%'),
    ('C', 'C - Zero Rated'),
    ('D', 'D - Non-VAT'),
    ('E', 'E - Reduced VAT 8%'),
]


class Ingredient(models.Model):
    """Raw ingredients bought from suppliers and consumed by recipes"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=30, default='piece', help_text='Free-form unit (kg, litre, piece, ...)')
    category = models.CharField(max_length=100, blank=True)
    cost_per_unit = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    current_stock = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    tax_ty_cd = models.CharField(max_length=1, choices=TAX_TYPE_CHOICES, default='B')
    item_cd = models.CharField(max_length=20, blank=True, null=True, unique=True, help_text='KRA item code')
    item_cls_cd = models.CharField(max_length=10, blank=True, null=True, help_text='KRA item classification code')
    kra_status = models.CharField(max_length=20, choices=KRA_STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_kra_registered(self):
        return bool(self.item_cd and self.item_cls_cd)

    class Meta:
        db_table = 'ingredients'
        ordering = ['name']


class Recipe(models.Model):
    """Menu items sold at the POS, composed of ingredients"""
    COMPOSITION_STATUS_CHOICES = [
        ('pending', 'Not Sent'),
        ('ok', 'Sent'),
        ('partial_success', 'Partially Sent'),
        ('error', 'Send Failed'),
    ]

    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    unit = models.CharField(max_length=30, default='plate')
    price = models.DecimalField(max_digits=12, decimal_places=2, help_text='Tax-inclusive selling price')
    tax_ty_cd = models.CharField(max_length=1, choices=TAX_TYPE_CHOICES, default='B')
    is_active = models.BooleanField(default=True)
    item_cd = models.CharField(max_length=20, blank=True, null=True, unique=True, help_text='KRA item code')
    item_cls_cd = models.CharField(max_length=10, blank=True, null=True, help_text='KRA item classification code')
    kra_status = models.CharField(max_length=20, choices=KRA_STATUS_CHOICES, default='pending')
    kra_composition_status = models.CharField(max_length=20, choices=COMPOSITION_STATUS_CHOICES, default='pending')
    kra_composition_no = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_kra_registered(self):
        return bool(self.item_cd and self.item_cls_cd)

    def get_cost(self):
        """Ingredient cost of one portion"""
        return sum(
            (component.quantity * component.ingredient.cost_per_unit for component in self.components.all()),
            Decimal('0.00')
        )

    class Meta:
        db_table = 'recipes'
        ordering = ['name']


class RecipeComponent(models.Model):
    """Ingredient quantity used by one portion of a recipe"""
    recipe = models.ForeignKey(Recipe, on_delete=models.CASCADE, related_name='components')
    ingredient = models.ForeignKey(Ingredient, on_delete=models.PROTECT, related_name='recipe_components')
    quantity = models.DecimalField(max_digits=10, decimal_places=3)

    def __str__(self):
        return f"{self.recipe.name}: {self.quantity} {self.ingredient.unit} {self.ingredient.name}"

    class Meta:
        db_table = 'recipe_components'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['recipe', 'ingredient'], name='uniq_recipe_ingredient'),
        ]
