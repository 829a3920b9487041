"""Utility functions for audit logging, permissions and pagination"""
import logging

from rest_framework.exceptions import ValidationError

from .models import AuditLog

logger = logging.getLogger(__name__)

# Groups that may configure the KRA eTIMS device
KRA_ADMIN_GROUPS = ('Admin', 'Manager')


def can_manage_kra(user):
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser or user.is_staff:
        return True
    return user.groups.filter(name__in=KRA_ADMIN_GROUPS).exists()


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, kra_sale, kra_refund, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        object_reference: Reference identifier (e.g., KRA invoice number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Audit failures never fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def get_page_params(request, default_limit=20):
    """Read ``page`` and ``limit`` query params; invalid values raise a 400"""
    params = {}
    for name, default in (('page', 1), ('limit', default_limit)):
        raw = request.query_params.get(name, default)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError({name: f'Must be a positive integer. Got {raw!r}.'})
        if value < 1:
            raise ValidationError({name: f'Must be a positive integer. Got {raw!r}.'})
        params[name] = value
    return params['page'], params['limit']
