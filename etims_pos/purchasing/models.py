from django.db import models
from decimal import Decimal
from etims_pos.catalog.models import Ingredient
from etims_pos.parties.models import Supplier
from etims_pos.core.models import User


class Purchase(models.Model):
    """Purchase/Bill from supplier"""
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('finalized', 'Finalized'),
        ('cancelled', 'Cancelled'),
    ]

    PAYMENT_TYPE_CHOICES = [
        ('cash', 'Cash'),
        ('credit', 'Credit'),
        ('cash_credit', 'Cash/Credit'),
        ('bank_check', 'Bank Check'),
        ('card', 'Debit & Credit Card'),
        ('mpesa', 'Mobile Money'),
        ('other', 'Other'),
    ]

    KRA_STATUS_CHOICES = [
        ('pending', 'Not Submitted'),
        ('ok', 'Submitted'),
        ('error', 'Submission Failed'),
    ]

    purchase_number = models.CharField(max_length=100, unique=True, blank=True, null=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name='purchases')
    supplier_invoice_no = models.PositiveIntegerField(help_text='Invoice number printed on the supplier bill')
    purchase_date = models.DateField()
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, default='cash')
    confirmed_at = models.DateTimeField(null=True, blank=True, help_text='When the goods were received and confirmed')
    warehouse_date = models.DateField(null=True, blank=True, help_text='When the goods were put into stock')
    total_tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'),
                                           help_text='Total tax printed on the supplier bill')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='finalized')
    notes = models.TextField(blank=True)
    kra_status = models.CharField(max_length=20, choices=KRA_STATUS_CHOICES, default='pending')
    kra_invoice_no = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='purchases')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.purchase_number or f"Purchase-{self.id}"

    def get_subtotal(self):
        """Calculate subtotal from all items"""
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def get_total(self):
        """Supplier bill total: lines plus the bill's tax"""
        return self.get_subtotal() + self.total_tax_amount

    class Meta:
        db_table = 'purchases'
        ordering = ['-purchase_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_purchase_status'),
            models.Index(fields=['supplier', 'supplier_invoice_no'], name='idx_purchase_supplier_invc'),
            models.Index(fields=['-purchase_date', '-created_at'], name='idx_purchase_date_created'),
        ]


class PurchaseItem(models.Model):
    """Purchase line items"""
    purchase = models.ForeignKey(Purchase, on_delete=models.CASCADE, related_name='items')
    ingredient = models.ForeignKey(Ingredient, on_delete=models.PROTECT, related_name='purchase_items')
    quantity = models.DecimalField(max_digits=10, decimal_places=3)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    def get_line_total(self):
        """Calculate line total"""
        return self.quantity * self.unit_price

    class Meta:
        db_table = 'purchase_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['purchase', 'ingredient'], name='idx_puritem_pur_ingredient'),
        ]
