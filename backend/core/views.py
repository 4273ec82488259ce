import logging
from datetime import datetime, timezone as dt_timezone

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .models import Setting, AuditLog, STAFF_ROLES
from .permissions import IsAdminRole, IsStaffRole, CanManageUsers
from .serializers import (
    UserSerializer, UserCreateSerializer,
    SettingSerializer, AuditLogSerializer, user_access_flags
)
from .exceptions import validation_error_response, error_response
from .pagination import paginate_queryset
from .sanitizers import sanitize_search_query
from .throttling import LoginThrottle
from .utils import create_audit_log

User = get_user_model()
logger = logging.getLogger(__name__)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Email/password login restricted to active staff roles"""

    default_error_messages = {
        'no_active_account': 'Invalid email or password',
    }

    def validate(self, attrs):
        attrs[self.username_field] = User.objects.normalize_email((attrs.get(self.username_field) or '').strip())
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        if self.user.role not in STAFF_ROLES:
            raise AuthenticationFailed('Invalid email or password')
        update_last_login(None, self.user)
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['role'] = user.role
        token['permissions'] = list(user.permissions or [])
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [LoginThrottle]

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK:
            user = response.data.get('user') or {}
            create_audit_log(
                request=request,
                user=User.objects.filter(pk=user.get('id')).first(),
                action='LOGIN',
                model_name='User',
                object_id=user.get('id'),
                object_name=user.get('email'),
                changes={},
            )
            logger.info(f"User {user.get('email')} signed in")
        return response


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


def _session_payload(request):
    expires = None
    token = request.auth
    if token is not None and 'exp' in token:
        expires = datetime.fromtimestamp(token['exp'], tz=dt_timezone.utc).isoformat()
    user_data = UserSerializer(request.user).data
    return {'user': user_data, 'expires': expires}


@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def session(request):
    """
    GET: current session
    POST: record activity on the session
    DELETE: sign out by blacklisting the supplied refresh token
    """
    if request.method == 'GET':
        return Response(_session_payload(request))

    elif request.method == 'POST':
        update_last_login(None, request.user)
        payload = _session_payload(request)
        payload['message'] = 'Session updated'
        return Response(payload)

    else:  # DELETE
        refresh = request.data.get('refresh') if isinstance(request.data, dict) else None
        if not isinstance(refresh, str) or not refresh:
            return validation_error_response([
                {'field': 'refresh', 'message': 'Refresh token is required', 'code': 'REQUIRED_FIELD_MISSING'}
            ])
        try:
            token = RefreshToken(refresh)
            if str(token.get('user_id')) != str(request.user.pk):
                return error_response('Token does not belong to the current user', status.HTTP_400_BAD_REQUEST)
            token.blacklist()
        except TokenError as e:
            return error_response(f'Invalid refresh token: {e}', status.HTTP_400_BAD_REQUEST)
        logger.info(f"User {request.user.email} signed out")
        return Response({'message': 'Signed out successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with derived access flags"""
    user_data = UserSerializer(request.user).data
    user_data.update(user_access_flags(request.user))
    return Response(user_data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanManageUsers])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all()
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(
                request=request,
                action='CREATE',
                model_name='User',
                object_id=user.id,
                object_name=user.email,
                new_data={'email': user.email, 'name': user.name, 'role': user.role, 'permissions': user.permissions},
            )
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return validation_error_response(serializer.errors)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, CanManageUsers])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_data = {'email': user.email, 'name': user.name, 'role': user.role,
                    'permissions': list(user.permissions or []), 'is_active': user.is_active}
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            new_data = {'email': user.email, 'name': user.name, 'role': user.role,
                        'permissions': list(user.permissions or []), 'is_active': user.is_active}
            create_audit_log(
                request=request,
                action='UPDATE',
                model_name='User',
                object_id=user.id,
                object_name=user.email,
                old_data=old_data,
                new_data=new_data,
            )
            return Response(serializer.data)
        return validation_error_response(serializer.errors)
    else:  # DELETE
        if user.pk == request.user.pk:
            return error_response('You cannot delete your own account', status.HTTP_400_BAD_REQUEST)
        user_id, email = user.id, user.email
        user.delete()
        create_audit_log(
            request=request,
            action='DELETE',
            model_name='User',
            object_id=user_id,
            object_name=email,
            old_data={'email': email},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return validation_error_response(serializer.errors)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return validation_error_response(serializer.errors)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user')

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter.upper())

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    object_id = request.query_params.get('object_id', None)
    if object_id:
        queryset = queryset.filter(object_id=object_id)

    # Filter by date range
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    logs, pagination = paginate_queryset(queryset.order_by('-created_at', '-id'), request.query_params)
    return Response({
        'logs': AuditLogSerializer(logs, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog.objects.select_related('user'), pk=pk)
    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def global_search(request):
    """Global search across products, quotes and media"""
    query = sanitize_search_query(request.query_params.get('q', ''))

    if not query:
        return Response({
            'products': [],
            'quotes': [],
            'media': [],
        })

    from backend.catalog.models import Product
    from backend.catalog.serializers import ProductSerializer
    from backend.quotes.models import QuoteRequest
    from backend.quotes.serializers import QuoteRequestSerializer
    from backend.media.models import Media
    from backend.media.serializers import MediaSerializer

    results = {}

    products = Product.objects.filter(
        Q(name__icontains=query) |
        Q(description__icontains=query) |
        Q(brand__icontains=query) |
        Q(material__icontains=query)
    ).prefetch_related('images', 'documents', 'bulk_discounts').order_by('name')[:20]
    results['products'] = ProductSerializer(products, many=True).data

    quotes = QuoteRequest.objects.filter(
        Q(quote_number__icontains=query) |
        Q(customer_name__icontains=query) |
        Q(customer_email__icontains=query) |
        Q(company__icontains=query)
    ).prefetch_related('products__product').order_by('-submitted_at')[:20]
    results['quotes'] = QuoteRequestSerializer(quotes, many=True).data

    media = Media.objects.filter(
        Q(original_name__icontains=query) |
        Q(filename__icontains=query) |
        Q(mime_type__icontains=query)
    ).order_by('-created_at')[:20]
    results['media'] = MediaSerializer(media, many=True).data

    return Response(results)
