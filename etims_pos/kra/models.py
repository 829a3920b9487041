from django.db import models
from decimal import Decimal
from etims_pos.catalog.models import Ingredient, Recipe
from etims_pos.core.models import User
from etims_pos.parties.models import Customer
from etims_pos.pos.models import SalesInvoice
from etims_pos.purchasing.models import Purchase


class KraTransaction(models.Model):
    """One attempt to register a fiscal event with KRA eTIMS"""
    TYPE_CHOICES = [
        ('purchase', 'Purchase'),
        ('sale', 'Sale'),
        ('refund', 'Refund'),
        ('item_composition', 'Item Composition'),
        ('item_registration', 'Item Registration'),
        ('stock_io', 'Stock Movement'),
        ('stock_master', 'Stock Master'),
        ('customer', 'Branch Customer'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('success', 'Success'),
        ('error', 'Error'),
        ('partial_success', 'Partial Success'),
    ]

    transaction_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    invoice_no = models.PositiveIntegerField(null=True, blank=True, help_text='Locally allocated invoice / composition / SAR number')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    items_data = models.JSONField(default=list, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    request_payload = models.JSONField(default=dict, blank=True)
    response_data = models.JSONField(null=True, blank=True)
    result_code = models.CharField(max_length=10, blank=True)
    result_message = models.TextField(blank=True)
    error_message = models.TextField(blank=True)
    attempt = models.PositiveSmallIntegerField(default=1)
    purchase = models.ForeignKey(Purchase, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    sales_invoice = models.ForeignKey(SalesInvoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    recipe = models.ForeignKey(Recipe, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    ingredient = models.ForeignKey(Ingredient, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_transactions')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_transaction_type_display()} #{self.invoice_no or self.id} ({self.status})"

    class Meta:
        db_table = 'kra_transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['transaction_type', 'status'], name='idx_kratx_type_status'),
            models.Index(fields=['transaction_type', 'invoice_no'], name='idx_kratx_type_invoice'),
            models.Index(fields=['-created_at'], name='idx_kratx_created'),
        ]


class DeviceCredential(models.Model):
    """OSCU/VSCU device registration; the latest active row signs every request"""
    tin = models.CharField(max_length=20)
    bhf_id = models.CharField(max_length=2, default='00')
    cmc_key = models.CharField(max_length=255)
    dvc_id = models.CharField(max_length=50, blank=True)
    sdc_id = models.CharField(max_length=50, blank=True)
    mrc_no = models.CharField(max_length=50, blank=True)
    dvc_srl_no = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    kra_response = models.JSONField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='kra_device_credentials')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.tin}/{self.bhf_id}"

    class Meta:
        db_table = 'kra_device_credentials'
        ordering = ['-created_at']


class SequenceCounter(models.Model):
    """Last number issued for a named sequence"""
    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name}={self.last_value}"

    class Meta:
        db_table = 'kra_sequences'
        ordering = ['name']
