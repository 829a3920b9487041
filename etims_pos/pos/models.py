from django.db import models
from decimal import Decimal
from etims_pos.catalog.models import Recipe
from etims_pos.parties.models import Customer
from etims_pos.core.models import User


class Order(models.Model):
    """Kitchen/table orders"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('preparing', 'Preparing'),
        ('served', 'Served'),
        ('paid', 'Paid'),
        ('cancelled', 'Cancelled'),
    ]

    order_number = models.CharField(max_length=100, unique=True, blank=True, null=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    customer_name = models.CharField(max_length=200, blank=True)
    table_number = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number or f"Order-{self.id}"

    def get_subtotal(self):
        """Sum of line totals before the order discount"""
        return sum((item.get_line_total() for item in self.items.all()), Decimal('0.00'))

    def get_total(self):
        return max(self.get_subtotal() - self.discount_amount, Decimal('0.00'))

    class Meta:
        db_table = 'table_orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['-created_at'], name='idx_order_created'),
        ]


class OrderItem(models.Model):
    """Order lines; name and price are snapshots of the recipe at order time"""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    recipe = models.ForeignKey(Recipe, on_delete=models.PROTECT, related_name='order_items')
    name = models.CharField(max_length=200)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.DecimalField(max_digits=10, decimal_places=3)

    def get_line_total(self):
        """Calculate line total"""
        return self.quantity * self.unit_price

    class Meta:
        db_table = 'table_order_items'
        ordering = ['id']


class SalesInvoice(models.Model):
    """Fiscal invoice (or credit note) registered with KRA for an order"""
    KRA_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('ok', 'Registered'),
        ('error', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('credit', 'Credit'),
        ('cash_credit', 'Cash/Credit'),
        ('bank_check', 'Bank Check'),
        ('card', 'Debit & Credit Card'),
        ('mpesa', 'M-Pesa'),
        ('mobile', 'Mobile Money'),
        ('other', 'Other'),
    ]

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='sales_invoices')
    invc_no = models.PositiveIntegerField(unique=True)
    org_invc_no = models.PositiveIntegerField(default=0, help_text='Original invoice number (refunds only)')
    trd_invc_no = models.CharField(max_length=50, blank=True)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default='cash')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='sales_invoices')
    cust_tin = models.CharField(max_length=20, blank=True)
    cust_nm = models.CharField(max_length=200, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    taxable_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    kra_status = models.CharField(max_length=20, choices=KRA_STATUS_CHOICES, default='pending')
    kra_error = models.TextField(blank=True)
    kra_cur_rcpt_no = models.PositiveIntegerField(null=True, blank=True)
    kra_tot_rcpt_no = models.PositiveIntegerField(null=True, blank=True)
    kra_intrl_data = models.CharField(max_length=200, blank=True)
    kra_rcpt_sign = models.CharField(max_length=200, blank=True)
    kra_sdc_date_time = models.CharField(max_length=20, blank=True)
    is_refund = models.BooleanField(default=False)
    original_invoice = models.ForeignKey('self', on_delete=models.PROTECT, null=True, blank=True, related_name='refunds')
    refund_multiplier = models.DecimalField(max_digits=7, decimal_places=6, null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='sales_invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        prefix = 'CN' if self.is_refund else 'INV'
        return f"{prefix}-{self.invc_no}"

    class Meta:
        db_table = 'sales_invoices'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['kra_status'], name='idx_salesinv_kra_status'),
            models.Index(fields=['order'], name='idx_salesinv_order'),
        ]
