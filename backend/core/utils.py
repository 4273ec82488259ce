"""Utility functions for audit logging"""
import logging

from .models import AuditLog

logger = logging.getLogger(__name__)

# Bookkeeping fields never reported as changes
IGNORED_CHANGE_FIELDS = ('id', 'created_at', 'updated_at')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR')
    return ip or None


def get_user_agent(request):
    if not request or not hasattr(request, 'META'):
        return ''
    return (request.META.get('HTTP_USER_AGENT') or '')[:500]


def build_changes(action, old_data=None, new_data=None):
    """
    Build the `changes` payload of an audit entry.

    CREATE records every field of new_data as {from: None, to: value},
    DELETE records every field of old_data as {from: value, to: None},
    UPDATE (and STATUS_CHANGE) only records fields whose value differs.
    """
    changes = {}

    if action == 'CREATE' and new_data:
        for field, value in new_data.items():
            if field in IGNORED_CHANGE_FIELDS:
                continue
            changes[field] = {'from': None, 'to': value}

    elif action == 'DELETE' and old_data:
        for field, value in old_data.items():
            if field in IGNORED_CHANGE_FIELDS:
                continue
            changes[field] = {'from': value, 'to': None}

    elif action in ('UPDATE', 'STATUS_CHANGE') and old_data is not None and new_data is not None:
        for field, new_value in new_data.items():
            if field in IGNORED_CHANGE_FIELDS:
                continue
            old_value = old_data.get(field)
            if old_value != new_value:
                changes[field] = {'from': old_value, 'to': new_value}

    return changes


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None,
                     old_data=None, new_data=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and user agent) - optional if user is provided
        action: Action type (CREATE, UPDATE, DELETE, STATUS_CHANGE, UPLOAD, DOWNLOAD, LOGIN)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made; built from old_data/new_data when omitted
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., product name, quote number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        if changes is None:
            changes = build_changes(action, old_data, new_data)

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
            user_agent=get_user_agent(request),
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None
