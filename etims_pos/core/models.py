from django.contrib.auth.models import AbstractUser
from django.db import models

FISCAL_ACTION_PREFIX = 'kra_'


class User(AbstractUser):
    """Cashiers, managers and admins; KRA access comes from groups or staff flags"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class AuditLogQuerySet(models.QuerySet):
    def fiscal(self):
        """Entries written by KRA eTIMS submissions"""
        return self.filter(action__startswith=FISCAL_ACTION_PREFIX)

    def for_reference(self, reference):
        return self.filter(object_reference=str(reference))


class AuditLog(models.Model):
    """Who did what to which order, purchase or fiscal document"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('order_create', 'Order Created'),
        ('purchase_create', 'Purchase Created'),
        ('kra_purchase', 'KRA Purchase Submitted'),
        ('kra_sale', 'KRA Sale Submitted'),
        ('kra_sale_retry', 'KRA Sale Retried'),
        ('kra_refund', 'KRA Refund Submitted'),
        ('kra_item_register', 'KRA Item Registered'),
        ('kra_composition', 'KRA Item Composition Sent'),
        ('kra_stock_io', 'KRA Stock Movement Sent'),
        ('kra_stock_master', 'KRA Stock Master Sent'),
        ('kra_customer', 'KRA Customer Registered'),
        ('kra_device_save', 'KRA Device Credentials Saved'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., recipe name, invoice number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., KRA invoice number, supplier invoice number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    def __str__(self):
        return f"{self.get_action_display()} {self.model_name} #{self.object_reference or self.object_id}"

    @property
    def is_fiscal(self):
        return self.action.startswith(FISCAL_ACTION_PREFIX)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]
