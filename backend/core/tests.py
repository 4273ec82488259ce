"""
Test suite for the core module
Tests: users and roles, login/session, user admin, audit trail, sanitizers,
throttling, error shape, company profile and operational endpoints
"""
import os
from decimal import Decimal
from importlib import reload
from io import StringIO
from unittest.mock import mock_open, patch

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, RequestFactory, override_settings
from rest_framework import status

from backend.catalog.models import Product
from backend.config import urls as root_urls
from backend.core import monitoring
from backend.core.exceptions import format_validation_errors, flatten_serializer_errors
from backend.core.models import AuditLog, Permission, UserRole, Setting, User
from backend.core.sanitizers import (
    sanitize_text, sanitize_email, sanitize_number, sanitize_pagination, sanitize_search_query,
    sanitize_file_name, sanitize_url,
)
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.throttling import parse_window_rate, LoginThrottle
from backend.core.utils import build_changes, create_audit_log, get_client_ip
from backend.media.models import Media

HEALTHY_MEMORY = {'used': 100, 'total': 1000, 'percentage': 10.0}


class UserModelTests(TestCase):
    """Test role and permission helpers on the user model"""

    def test_admin_has_every_permission(self):
        admin = TestDataFactory.create_user(role=UserRole.ADMIN)
        for permission in Permission.values:
            self.assertTrue(admin.has_app_permission(permission))

    def test_non_admin_needs_explicit_permission(self):
        user = TestDataFactory.create_user(permissions=[Permission.MANAGE_MEDIA])
        self.assertTrue(user.has_app_permission(Permission.MANAGE_MEDIA))
        self.assertFalse(user.has_app_permission(Permission.MANAGE_PRODUCTS))

    def test_create_superuser_defaults_to_admin_role(self):
        user = User.objects.create_superuser(email='root@Example.COM', password='s3cret-pass!')
        self.assertEqual(user.role, UserRole.ADMIN)
        self.assertEqual(user.email, 'root@example.com')
        self.assertEqual(sorted(user.permissions), sorted(Permission.values))


class AuthTests(TestCase):
    """Test login, token refresh and session endpoints"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.manager = TestDataFactory.create_content_manager(email='manager@pipesupply.com', password='Str0ng-pass!')

    def login(self, email='manager@pipesupply.com', password='Str0ng-pass!'):
        return self.client.post('/api/v1/auth/login/', {'email': email, 'password': password}, format='json')

    def test_login_returns_tokens_and_user(self):
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'manager@pipesupply.com')
        self.assertEqual(response.data['user']['role'], UserRole.CONTENT_MANAGER)

    def test_login_normalizes_email_domain(self):
        response = self.login(email='  manager@PIPESUPPLY.COM ')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_login_sets_last_login_and_audits(self):
        self.login()
        self.manager.refresh_from_db()
        self.assertIsNotNone(self.manager.last_login)
        self.assertTrue(AuditLog.objects.filter(action='LOGIN', object_id=str(self.manager.id)).exists())

    def test_login_wrong_password(self):
        response = self.login(password='wrong-password')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid email or password')

    def test_customer_role_cannot_sign_in(self):
        TestDataFactory.create_user(email='buyer@example.com', password='Str0ng-pass!')
        response = self.login(email='buyer@example.com')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_user_cannot_sign_in(self):
        self.manager.is_active = False
        self.manager.save()
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_session_requires_authentication(self):
        response = self.client.get('/api/v1/auth/session/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_session_returns_user_and_expiry(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.get('/api/v1/auth/session/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['email'], 'manager@pipesupply.com')
        self.assertIsNotNone(response.data['expires'])

    def test_logout_blacklists_refresh_token(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = self.client.delete('/api/v1/auth/session/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.logout()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_access_flags(self):
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_admin'])
        self.assertTrue(response.data['can_manage_products'])
        self.assertFalse(response.data['can_manage_users'])

    @patch.object(LoginThrottle, 'rate', '2/15m', create=True)
    def test_login_is_rate_limited(self):
        self.login(password='bad-1')
        self.login(password='bad-2')
        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn('Retry-After', response)


class UserAdminTests(TestCase):
    """Test the user administration endpoints"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_content_manager_cannot_manage_users(self):
        manager = TestDataFactory.create_content_manager()
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_user(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'editor@pipesupply.com',
            'name': 'Editor',
            'role': UserRole.CONTENT_MANAGER,
            'permissions': [Permission.MANAGE_PRODUCTS],
            'password': 'Another-Str0ng-pass',
            'password_confirm': 'Another-Str0ng-pass',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', model_name='User').exists())

    def test_create_user_password_mismatch(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'editor@pipesupply.com',
            'password': 'Another-Str0ng-pass',
            'password_confirm': 'different-pass-123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Validation failed')
        self.assertEqual(response.data['validation_errors'][0]['field'], 'password')

    def test_admin_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_other_user(self):
        other = TestDataFactory.create_user()
        response = self.client.delete(f'/api/v1/users/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class AuditTrailTests(TestCase):
    """Test change tracking and audit log creation"""

    def test_build_changes_create(self):
        changes = build_changes('CREATE', new_data={'id': 1, 'name': 'Pipe', 'created_at': 'x'})
        self.assertEqual(changes, {'name': {'from': None, 'to': 'Pipe'}})

    def test_build_changes_delete(self):
        changes = build_changes('DELETE', old_data={'name': 'Pipe', 'updated_at': 'x'})
        self.assertEqual(changes, {'name': {'from': 'Pipe', 'to': None}})

    def test_build_changes_update_keeps_only_differences(self):
        changes = build_changes(
            'UPDATE',
            old_data={'name': 'Pipe', 'brand': 'A'},
            new_data={'name': 'Pipe', 'brand': 'B'},
        )
        self.assertEqual(changes, {'brand': {'from': 'A', 'to': 'B'}})

    def test_create_audit_log_records_request_metadata(self):
        user = TestDataFactory.create_admin()
        request = RequestFactory().post('/', HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1', HTTP_USER_AGENT='tests')
        request.user = user
        log = create_audit_log(request=request, action='UPDATE', model_name='Product', object_id=7,
                               old_data={'name': 'a'}, new_data={'name': 'b'})
        self.assertEqual(log.user, user)
        self.assertEqual(log.object_id, '7')
        self.assertEqual(log.ip_address, '203.0.113.9')
        self.assertEqual(log.user_agent, 'tests')
        self.assertEqual(log.changes, {'name': {'from': 'a', 'to': 'b'}})

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='UPDATE', model_name='Product'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_client_ip_falls_back_to_real_ip_then_remote_addr(self):
        factory = RequestFactory()
        self.assertEqual(get_client_ip(factory.get('/', HTTP_X_REAL_IP='198.51.100.2')), '198.51.100.2')
        self.assertEqual(get_client_ip(factory.get('/')), '127.0.0.1')

    def test_audit_log_list_is_admin_only(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_content_manager())
        self.assertEqual(client.get('/api/v1/audit-logs/').status_code, status.HTTP_403_FORBIDDEN)

        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/audit-logs/?action=login')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('logs', response.data)
        self.assertIn('pagination', response.data)


class SanitizerTests(TestCase):
    """Test input sanitization helpers"""

    def test_sanitize_text_strips_markup(self):
        self.assertEqual(sanitize_text('  <b>Hello</b> & bye\x00 '), 'Hello &amp; bye')
        self.assertEqual(sanitize_text(None), '')

    def test_sanitize_email(self):
        self.assertEqual(sanitize_email(' John@Example.COM '), 'John@example.com')
        self.assertIsNone(sanitize_email('not-an-email'))

    def test_sanitize_number(self):
        self.assertEqual(sanitize_number('5', min_value=1, integer=True), 5)
        self.assertIsNone(sanitize_number('5.5', integer=True))
        self.assertIsNone(sanitize_number('-1', min_value=0))
        self.assertIsNone(sanitize_number('abc'))

    def test_sanitize_pagination_clamps(self):
        self.assertEqual(sanitize_pagination('3', '10'), (3, 10, 20))
        self.assertEqual(sanitize_pagination('0', '1000'), (1, 20, 0))
        self.assertEqual(sanitize_pagination(None, None, default_limit=10), (1, 10, 0))
        self.assertEqual(sanitize_pagination('1e18', '100'), (100000, 100, 9999900))

    def test_sanitize_search_query(self):
        self.assertEqual(sanitize_search_query(" steel'; pipe "), 'steel pipe')
        self.assertIsNone(sanitize_search_query('   '))

    def test_sanitize_file_name(self):
        self.assertEqual(sanitize_file_name('../report?.pdf'), 'report.pdf')
        self.assertIsNone(sanitize_file_name('CON'))

    def test_sanitize_url(self):
        self.assertEqual(sanitize_url('https://pipesupply.com/a'), 'https://pipesupply.com/a')
        self.assertIsNone(sanitize_url('javascript:alert(1)'))


class ErrorFormattingTests(TestCase):
    """Test the validation error shape helpers"""

    def test_format_validation_errors(self):
        self.assertEqual(format_validation_errors([]), '')
        self.assertEqual(format_validation_errors([{'field': 'name', 'message': 'Name is required'}]), 'Name is required')
        self.assertEqual(
            format_validation_errors([
                {'field': 'name', 'message': 'Name is required'},
                {'field': 'brand', 'message': 'Brand is required'},
            ]),
            'Multiple validation errors: name: Name is required; brand: Brand is required',
        )

    def test_flatten_serializer_errors(self):
        from rest_framework.exceptions import ErrorDetail
        flat = flatten_serializer_errors({'address': {'city': [ErrorDetail('This field is required.', code='required')]}})
        self.assertEqual(flat, [{'field': 'address.city', 'message': 'This field is required.', 'code': 'REQUIRED'}])


class ThrottleRateTests(TestCase):
    """Test window rate parsing"""

    def test_parse_window_rates(self):
        self.assertEqual(parse_window_rate('200/15m'), (200, 900))
        self.assertEqual(parse_window_rate('100/hour'), (100, 3600))
        self.assertEqual(parse_window_rate('5/s'), (5, 1))
        self.assertEqual(parse_window_rate(None), (None, None))

    def test_parse_invalid_rate(self):
        with self.assertRaises(ValueError):
            parse_window_rate('lots')


class CompanyInfoTests(TestCase):
    """Test the company profile endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.profile = {
            'name': 'Gulf Pipe & Supply',
            'description': 'Pipes for the Gulf coast',
            'address': {
                'street': '1 Harbor Rd',
                'city': 'Houston',
                'state': 'TX',
                'zip_code': '77001',
                'country': 'USA',
            },
            'phone': '(555) 000-1111',
            'email': 'sales@gulfpipe.com',
            'service_areas': ['Texas'],
        }

    def test_public_read_returns_defaults(self):
        response = self.client.get('/api/v1/company/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Professional Pipe Supply Co.')
        self.assertEqual(response.data['address']['zip_code'], '12345')

    def test_content_manager_cannot_update(self):
        self.client.authenticate_user(TestDataFactory.create_content_manager())
        response = self.client.put('/api/v1/company/', self.profile, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_updates_profile(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.put('/api/v1/company/', self.profile, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['name'], 'Gulf Pipe & Supply')
        self.assertTrue(Setting.objects.filter(key='company_info').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Company', action='UPDATE').exists())

        self.client.logout()
        self.assertEqual(self.client.get('/api/v1/company/').data['email'], 'sales@gulfpipe.com')

    def test_invalid_profile_rejected(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.profile['email'] = 'nope'
        response = self.client.put('/api/v1/company/', self.profile, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['field'], 'email')


class OperationalEndpointTests(TestCase):
    """Test health, readiness, metrics and search"""

    @patch('backend.core.system_views.get_memory_usage', return_value=HEALTHY_MEMORY)
    def test_health(self, _memory):
        response = self.client.get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')
        self.assertEqual(response.data['checks']['database']['status'], 'up')

    @patch('backend.core.system_views.get_memory_usage', return_value={'used': 95, 'total': 100, 'percentage': 95.0})
    def test_health_degraded_on_memory_pressure(self, _memory):
        response = self.client.get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'degraded')

    def test_health_head_returns_status_only(self):
        response = self.client.head('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b'')

    @patch('backend.core.system_views.check_database', return_value={'status': 'down', 'error': 'connection refused'})
    def test_health_unhealthy_without_database(self, _database):
        self.assertEqual(self.client.head('/api/v1/health/').status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        response = self.client.get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['status'], 'unhealthy')

    def test_ready(self):
        response = self.client.get('/api/v1/ready/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['ready'])

    @patch('backend.core.system_views.MigrationExecutor')
    def test_not_ready_with_pending_migrations(self, executor):
        executor.return_value.migration_plan.return_value = [('catalog', '0002_pending')]
        response = self.client.get('/api/v1/ready/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertFalse(response.data['ready'])
        self.assertEqual(response.data['checks'], {'database': True, 'migrations': False})
        self.assertEqual(response.data['errors'], ['Database migrations not applied: 1 pending'])

    def test_metrics_admin_only(self):
        client = AuthenticatedAPIClient()
        self.assertEqual(client.get('/api/v1/metrics/').status_code, status.HTTP_401_UNAUTHORIZED)
        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/metrics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('requests', response.data)

    def test_global_search(self):
        TestDataFactory.create_product(name='Galvanized Elbow Pipe')
        TestDataFactory.create_quote(customer_name='Galvan Industries')
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_content_manager())
        response = client.get('/api/v1/search/?q=galvan')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(len(response.data['quotes']), 1)
        self.assertEqual(response.data['media'], [])

    def test_unknown_route_is_json_404(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/users/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Not found')


class MemoryUsageTests(TestCase):
    """Test process memory reporting"""

    def test_current_rss_read_from_statm(self):
        with patch('backend.core.monitoring.open', mock_open(read_data='9000 512 100 1 0 300 0\n'), create=True):
            self.assertEqual(monitoring.current_rss_bytes(), 512 * os.sysconf('SC_PAGE_SIZE'))

    @patch('backend.core.monitoring.peak_rss_bytes', return_value=900 * 1024 * 1024)
    @patch('backend.core.monitoring.current_rss_bytes', return_value=100 * 1024 * 1024)
    def test_used_is_current_not_peak(self, _current, _peak):
        memory = monitoring.get_memory_usage()
        self.assertEqual(memory['used'], 100)
        self.assertEqual(memory['peak'], 900)

    @patch('backend.core.monitoring.peak_rss_bytes', return_value=300 * 1024 * 1024)
    @patch('backend.core.monitoring.current_rss_bytes', return_value=None)
    def test_falls_back_to_peak_without_proc(self, _current, _peak):
        self.assertEqual(monitoring.get_memory_usage()['used'], 300)


class SettingEndpointTests(TestCase):
    """Test the admin-only settings table endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_create_update_delete_setting(self):
        response = self.client.post('/api/v1/settings/', {
            'key': 'quote_footer', 'value': {'text': 'Prices valid 30 days'}, 'description': 'Quote e-mail footer',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']

        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': {'text': '14 days'}}, format='json')
        self.assertEqual(response.data['value'], {'text': '14 days'})

        response = self.client.delete(f'/api/v1/settings/{setting_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_settings_forbidden_for_content_manager(self):
        self.client.authenticate_user(TestDataFactory.create_content_manager())
        self.assertEqual(self.client.get('/api/v1/settings/').status_code, status.HTTP_403_FORBIDDEN)


class SeedCatalogCommandTests(TestCase):
    """Test the seed_catalog management command"""

    def seed(self, *args):
        out = StringIO()
        call_command('seed_catalog', *args, stdout=out)
        return out.getvalue()

    def test_seed_is_idempotent(self):
        self.seed('--password', 'Seed-pass-123')
        output = self.seed()

        self.assertIn('already exists', output)
        self.assertEqual(Product.objects.count(), 3)
        self.assertEqual(Media.objects.count(), 2)
        admin = User.objects.get(email='admin@pipesupply.com')
        self.assertEqual(admin.role, UserRole.ADMIN)
        self.assertTrue(admin.check_password('Seed-pass-123'))
        self.assertEqual(User.objects.get(email='manager@pipesupply.com').role, UserRole.CONTENT_MANAGER)

    def test_seed_bulk_discount_tiers(self):
        self.seed()
        for product in Product.objects.all():
            self.assertEqual(
                list(product.bulk_discounts.order_by('min_quantity').values_list('min_quantity', 'discount')),
                [(10, Decimal('0.05')), (50, Decimal('0.10')), (100, Decimal('0.15'))],
            )

    def test_seeded_users_without_password_cannot_sign_in(self):
        self.seed()
        self.assertFalse(User.objects.get(email='manager@pipesupply.com').has_usable_password())


class MediaServingConfigTests(TestCase):
    """Test that /media/ and /static/ are only routed when enabled"""

    def setUp(self):
        self.addCleanup(reload, root_urls)

    def _routes(self):
        return [str(pattern.pattern) for pattern in reload(root_urls).urlpatterns]

    def test_media_not_served_when_disabled(self):
        with override_settings(SERVE_MEDIA_FILES=False):
            routes = self._routes()
        self.assertNotIn('^media/(?P<path>.*)$', routes)
        self.assertNotIn('^static/(?P<path>.*)$', routes)

    def test_media_served_when_enabled(self):
        with override_settings(SERVE_MEDIA_FILES=True):
            routes = self._routes()
        self.assertIn('^media/(?P<path>.*)$', routes)
