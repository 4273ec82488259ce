"""
Test suite for the reports module
Tests: dashboard access, catalog/quote/media KPIs and summary caching
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.catalog.models import ProductCategory, AvailabilityStatus
from backend.core.models import Permission
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.media.models import MediaType
from backend.quotes.models import QuoteRequest, QuoteStatus
from .views import average_response_hours

DASHBOARD_URL = '/api/v1/dashboard/'


class DashboardAccessTests(TestCase):
    """Test who may read the dashboard"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()

    def test_requires_authentication(self):
        response = self.client.get(DASHBOARD_URL)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_customer_is_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(DASHBOARD_URL)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_content_manager_can_read(self):
        self.client.authenticate_user(TestDataFactory.create_content_manager())
        response = self.client.get(DASHBOARD_URL)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Cache-Control'], 'private, max-age=60')

    def test_explicit_analytics_permission(self):
        """A non-staff user holding VIEW_ANALYTICS may read the dashboard"""
        self.client.authenticate_user(TestDataFactory.create_user(permissions=[Permission.VIEW_ANALYTICS]))
        response = self.client.get(DASHBOARD_URL)
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class DashboardSummaryTests(TestCase):
    """Test the dashboard KPI figures"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

        self.pipe = TestDataFactory.create_product(name='Steel Pipe', brand='SteelCorp')
        self.fitting = TestDataFactory.create_product(
            name='PVC Elbow', brand='PlastiFlow', category=ProductCategory.PVC_PIPE,
            availability=AvailabilityStatus.LOW_STOCK,
        )
        now = timezone.now()
        TestDataFactory.create_quote(
            products=[(self.pipe, 5)], status=QuoteStatus.RESPONDED,
            submitted_at=now - timedelta(hours=5), responded_at=now - timedelta(hours=2),
        )
        TestDataFactory.create_quote(
            products=[(self.pipe, 10), (self.fitting, 100)], status=QuoteStatus.RESPONDED,
            submitted_at=now - timedelta(hours=10), responded_at=now - timedelta(hours=9),
        )
        TestDataFactory.create_quote(products=[(self.fitting, 1)], submitted_at=now - timedelta(days=40))

        TestDataFactory.create_media(MediaType.IMAGE, 'image/jpeg', size=1024)
        TestDataFactory.create_media(size=512)

    def get_summary(self):
        response = self.client.get(DASHBOARD_URL)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.data

    def test_product_counts(self):
        products = self.get_summary()['products']
        self.assertEqual(products['total'], 2)
        self.assertEqual(products['by_category']['PVC_PIPE'], 1)
        self.assertEqual(products['by_category']['COPPER_PIPE'], 0)
        self.assertEqual(products['by_availability']['LOW_STOCK'], 1)

    def test_quote_counts(self):
        quotes = self.get_summary()['quotes']
        self.assertEqual(quotes['total'], 3)
        self.assertEqual(quotes['by_status'], {'PENDING': 1, 'RESPONDED': 2, 'CLOSED': 0, 'CANCELLED': 0})
        self.assertEqual(quotes['last_30_days'], 2)
        self.assertEqual(quotes['average_response_hours'], 2.0)

    def test_average_response_hours_without_responses(self):
        QuoteRequest.objects.update(responded_at=None)
        self.assertIsNone(average_response_hours())

    def test_media_totals(self):
        media = self.get_summary()['media']
        self.assertEqual(media['total'], 2)
        self.assertEqual(media['by_type']['IMAGE'], 1)
        self.assertEqual(media['total_bytes'], 1536)
        self.assertEqual(media['total_size_display'], '1.5 KB')

    def test_recent_quotes_newest_first(self):
        recent = self.get_summary()['recent_quotes']
        self.assertEqual(len(recent), 3)
        self.assertEqual([quote['product_count'] for quote in recent], [1, 2, 1])
        self.assertEqual(recent[0]['status'], QuoteStatus.RESPONDED)

    def test_top_requested_products(self):
        """Ranked by number of quotes, then by requested quantity"""
        top = self.get_summary()['top_requested_products']
        self.assertEqual([row['name'] for row in top], ['PVC Elbow', 'Steel Pipe'])
        self.assertEqual((top[0]['quote_count'], top[0]['total_quantity']), (2, 101))
        self.assertEqual((top[1]['quote_count'], top[1]['total_quantity']), (2, 15))

        TestDataFactory.create_quote(products=[(self.pipe, 1)])
        cache.clear()
        top = self.get_summary()['top_requested_products']
        self.assertEqual(top[0]['name'], 'Steel Pipe')
        self.assertEqual(top[0]['quote_count'], 3)

    def test_summary_is_cached_until_data_changes(self):
        self.assertEqual(self.get_summary()['quotes']['by_status']['CLOSED'], 0)

        # update() skips the invalidation signals
        QuoteRequest.objects.update(status=QuoteStatus.CLOSED)
        self.assertEqual(self.get_summary()['quotes']['by_status']['CLOSED'], 0)

        TestDataFactory.create_media()
        summary = self.get_summary()
        self.assertEqual(summary['quotes']['by_status']['CLOSED'], 3)
        self.assertEqual(summary['media']['total'], 3)
