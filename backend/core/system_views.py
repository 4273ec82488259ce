"""Company profile and operational endpoints (health, readiness, metrics)"""
import logging
import platform
import time

from django.conf import settings
from django.db import connection
from django.db.migrations.executor import MigrationExecutor
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .company import get_company_info, save_company_info
from .exceptions import validation_error_response
from .monitoring import metrics_collector, error_tracker, get_uptime, get_memory_usage
from .permissions import IsAdminRole, IsAdminRoleOrReadOnly
from .serializers import CompanyProfileSerializer
from .utils import create_audit_log

logger = logging.getLogger(__name__)

# Memory share above which the service reports itself degraded
MEMORY_DEGRADED_PERCENTAGE = 90


@api_view(['GET', 'PUT'])
@permission_classes([IsAdminRoleOrReadOnly])
def company_info(request):
    """GET: public company profile. PUT: replace it (admin only)"""
    if request.method == 'GET':
        return Response(get_company_info())

    old_data = get_company_info()
    serializer = CompanyProfileSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    data = serializer.data
    save_company_info(data)
    create_audit_log(
        request=request,
        action='UPDATE',
        model_name='Company',
        object_id='company_info',
        object_name=data['name'],
        old_data=old_data,
        new_data=data,
    )
    logger.info(f"Company profile updated by {request.user.email}")
    return Response({
        'message': 'Company information updated successfully',
        'data': get_company_info(),
    })


def check_database():
    started = time.perf_counter()
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {'status': 'down', 'error': str(e)}
    return {'status': 'up', 'response_time': round((time.perf_counter() - started) * 1000, 2)}


@api_view(['GET', 'HEAD'])
@permission_classes([AllowAny])
def health(request):
    """System health; 503 when the database is unreachable"""
    database = check_database()

    if request.method == 'HEAD':
        return Response(status=status.HTTP_200_OK if database['status'] == 'up' else status.HTTP_503_SERVICE_UNAVAILABLE)

    memory = get_memory_usage()
    health_status = 'healthy'
    if database['status'] != 'up':
        health_status = 'unhealthy'
    elif memory['percentage'] > MEMORY_DEGRADED_PERCENTAGE:
        health_status = 'degraded'

    payload = {
        'status': health_status,
        'timestamp': timezone.now().isoformat(),
        'uptime': get_uptime(),
        'checks': {
            'database': database,
            'memory': memory,
            'environment': {
                'debug': settings.DEBUG,
                'python_version': platform.python_version(),
            },
        },
    }
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE if health_status == 'unhealthy' else status.HTTP_200_OK
    return Response(payload, status=status_code)


@api_view(['GET'])
@permission_classes([AllowAny])
def ready(request):
    """Readiness: database reachable and every migration applied"""
    errors = []
    checks = {'database': False, 'migrations': False}

    try:
        connection.ensure_connection()
        checks['database'] = True
    except Exception as e:
        errors.append(f"Database connection failed: {e}")

    if checks['database']:
        try:
            executor = MigrationExecutor(connection)
            plan = executor.migration_plan(executor.loader.graph.leaf_nodes())
            if plan:
                errors.append(f"Database migrations not applied: {len(plan)} pending")
            else:
                checks['migrations'] = True
        except Exception as e:
            errors.append(f"Database migrations not applied: {e}")

    is_ready = not errors
    payload = {
        'ready': is_ready,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }
    if errors:
        payload['errors'] = errors
        logger.warning(f"Readiness check failed: {'; '.join(errors)}")
    return Response(payload, status=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def metrics(request):
    """Request and error metrics collected by this process"""
    return Response({
        'timestamp': timezone.now().isoformat(),
        'requests': metrics_collector.get_summary(),
        'errors': error_tracker.get_stats(),
        'process': {
            'uptime': get_uptime(),
            'memory': get_memory_usage(),
        },
    })
