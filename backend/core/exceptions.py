"""
Exception handling for the REST API.

Every error response is a JSON object with an `error` key; validation
failures additionally carry `details` and `validation_errors`.
"""
import logging
import uuid

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import set_rollback

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('backend.security')


def format_validation_errors(errors):
    """Render a list of {field, message} errors as one human readable string"""
    if not errors:
        return ''
    if len(errors) == 1:
        return errors[0]['message']
    return 'Multiple validation errors: ' + '; '.join(
        f"{error['field']}: {error['message']}" for error in errors
    )


def flatten_serializer_errors(detail, prefix=''):
    """Turn DRF's nested error dict into [{field, message, code}]"""
    flat = []
    if isinstance(detail, dict):
        for field, value in detail.items():
            name = f'{prefix}.{field}' if prefix else str(field)
            if name == 'non_field_errors':
                name = prefix or 'non_field_errors'
            flat.extend(flatten_serializer_errors(value, name))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                flat.extend(flatten_serializer_errors(value, f'{prefix}[{index}]'))
            else:
                flat.extend(flatten_serializer_errors(value, prefix))
    else:
        code = getattr(detail, 'code', None) or 'invalid'
        flat.append({
            'field': prefix or 'non_field_errors',
            'message': str(detail),
            'code': code.upper(),
        })
    return flat


def validation_error_response(errors, message='Validation failed'):
    """
    Build the 400 response for failed validation.

    `errors` is either a list of {field, message, code} dicts or a DRF
    serializer.errors mapping.
    """
    if not isinstance(errors, list):
        errors = flatten_serializer_errors(errors)
    return Response({
        'error': message,
        'details': format_validation_errors(errors),
        'validation_errors': errors,
    }, status=status.HTTP_400_BAD_REQUEST)


def error_response(message, status_code, **extra):
    data = {'error': message}
    data.update(extra)
    return Response(data, status=status_code)


def custom_exception_handler(exc, context):
    """DRF exception handler producing the API's error shape"""
    request = context.get('request')
    set_rollback()
    path = request.path if request is not None else ''

    if isinstance(exc, Http404):
        return error_response('Not found', status.HTTP_404_NOT_FOUND)

    if isinstance(exc, PermissionDenied):
        exc = exceptions.PermissionDenied()

    if isinstance(exc, exceptions.ValidationError):
        return validation_error_response(exc.detail)

    if isinstance(exc, exceptions.Throttled):
        wait = int(exc.wait) if exc.wait is not None else None
        security_logger.warning(f"Rate limit exceeded on {path} from {_client_ip(request)}")
        response = error_response(
            'Too many requests. Please try again later.',
            status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=wait,
        )
        if wait is not None:
            response['Retry-After'] = str(wait)
        return response

    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        if request is not None and request.method not in ('GET', 'HEAD', 'OPTIONS'):
            security_logger.warning(f"Unauthenticated {request.method} attempt on {path} from {_client_ip(request)}")
        response = error_response(_detail_message(exc, 'Authentication required'), exc.status_code)
        auth_header = getattr(exc, 'auth_header', None)
        if auth_header:
            response['WWW-Authenticate'] = auth_header
        return response

    if isinstance(exc, exceptions.APIException):
        return error_response(_detail_message(exc, 'Request failed'), exc.status_code)

    error_id = uuid.uuid4().hex[:12]
    logger.exception(f"Unhandled error {error_id} on {path}: {exc}")
    try:
        from .monitoring import error_tracker
        error_tracker.track(type(exc).__name__)
    except Exception as tracking_error:
        logger.warning(f"Could not track error {error_id}: {tracking_error}")
    return error_response('Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR, error_id=error_id)


def _detail_message(exc, default):
    detail = getattr(exc, 'detail', None)
    if isinstance(detail, dict):
        detail = detail.get('detail') or detail.get('message') or default
    if isinstance(detail, list):
        detail = detail[0] if detail else default
    return str(detail) if detail else default


def _client_ip(request):
    from .utils import get_client_ip
    return get_client_ip(request) if request is not None else None
