from django.db import models


class Supplier(models.Model):
    """Suppliers (ingredient vendors registered with KRA)"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True, blank=True, null=True)
    tin = models.CharField(max_length=20, blank=True, help_text='Supplier KRA PIN (TIN)')
    bhf_id = models.CharField(max_length=2, default='00', help_text='Supplier branch (BHF) id')
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'
        ordering = ['name']


class Customer(models.Model):
    """Customers"""
    KRA_STATUS_CHOICES = [
        ('pending', 'Not Registered'),
        ('ok', 'Registered'),
        ('error', 'Registration Failed'),
    ]

    name = models.CharField(max_length=200)
    kra_pin = models.CharField(max_length=20, blank=True, null=True, unique=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    kra_status = models.CharField(max_length=20, choices=KRA_STATUS_CHOICES, default='pending')
    kra_error = models.TextField(blank=True)
    kra_customer_no = models.CharField(max_length=20, blank=True, help_text='custNo sent with saveBhfCustomer')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'customers'
        ordering = ['name']
