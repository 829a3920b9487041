from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog, FISCAL_ACTION_PREFIX


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'is_active', 'is_staff', 'date_joined']
    list_filter = ['is_active', 'is_staff', 'is_superuser', 'groups']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'phone']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Contact', {'fields': ('phone',)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Contact', {'fields': ('phone',)}),
    )


class FiscalActionFilter(admin.SimpleListFilter):
    title = 'KRA action'
    parameter_name = 'fiscal'

    def lookups(self, request, model_admin):
        return [('yes', 'KRA submissions'), ('no', 'Other actions')]

    def queryset(self, request, queryset):
        if self.value() == 'yes':
            return queryset.filter(action__startswith=FISCAL_ACTION_PREFIX)
        if self.value() == 'no':
            return queryset.exclude(action__startswith=FISCAL_ACTION_PREFIX)
        return queryset


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'action', 'model_name', 'object_name', 'object_reference', 'ip_address']
    list_filter = [FiscalActionFilter, 'action', 'model_name', 'created_at']
    search_fields = ['user__username', 'object_name', 'object_reference']
    ordering = ['-created_at']
    readonly_fields = ['user', 'action', 'model_name', 'object_id', 'object_name', 'object_reference', 'changes', 'ip_address', 'created_at']
