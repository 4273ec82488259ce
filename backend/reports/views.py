"""
Admin dashboard

The summary is cached for DASHBOARD_KPI_CACHE_TTL seconds; product, quote
and media saves bump the dashboard cache namespace.
"""
import logging
from datetime import timedelta

from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.catalog.models import Product, ProductCategory, AvailabilityStatus
from backend.core.cache_utils import cached_query, DASHBOARD_KPI_CACHE_TTL, DASHBOARD_NAMESPACE
from backend.core.permissions import CanViewAnalytics
from backend.media.models import Media, MediaType
from backend.media.utils import format_file_size
from backend.quotes.models import QuoteRequest, QuoteProduct, QuoteStatus

logger = logging.getLogger(__name__)

RECENT_QUOTES_LIMIT = 5
TOP_PRODUCTS_LIMIT = 5


def _counts_by(queryset, field, choices):
    counts = {value: 0 for value in choices.values}
    for row in queryset.values(field).annotate(count=Count('id')):
        counts[row[field]] = row['count']
    return counts


def product_summary():
    return {
        'total': Product.objects.count(),
        'by_category': _counts_by(Product.objects.all(), 'category', ProductCategory),
        'by_availability': _counts_by(Product.objects.all(), 'availability', AvailabilityStatus),
    }


def average_response_hours():
    """Mean hours from submission to first response over responded quotes"""
    durations = [
        (responded_at - submitted_at).total_seconds()
        for submitted_at, responded_at in QuoteRequest.objects.filter(
            responded_at__isnull=False,
        ).values_list('submitted_at', 'responded_at')
    ]
    if not durations:
        return None
    return round(sum(durations) / len(durations) / 3600, 1)


def quote_summary(now):
    return {
        'total': QuoteRequest.objects.count(),
        'by_status': _counts_by(QuoteRequest.objects.all(), 'status', QuoteStatus),
        'last_30_days': QuoteRequest.objects.filter(submitted_at__gte=now - timedelta(days=30)).count(),
        'average_response_hours': average_response_hours(),
    }


def media_summary():
    total_bytes = Media.objects.aggregate(total=Sum('size'))['total'] or 0
    return {
        'total': Media.objects.count(),
        'by_type': _counts_by(Media.objects.all(), 'type', MediaType),
        'total_bytes': total_bytes,
        'total_size_display': format_file_size(total_bytes),
    }


def recent_quotes():
    quotes = (
        QuoteRequest.objects.annotate(product_count=Count('products'))
        .order_by('-submitted_at', '-id')[:RECENT_QUOTES_LIMIT]
    )
    return [
        {
            'id': quote.id,
            'quote_number': quote.quote_number,
            'customer_name': quote.customer_name,
            'company': quote.company,
            'status': quote.status,
            'product_count': quote.product_count,
            'submitted_at': quote.submitted_at,
        }
        for quote in quotes
    ]


def top_requested_products():
    rows = (
        QuoteProduct.objects.values('product_id', 'product__name', 'product__brand')
        .annotate(quote_count=Count('quote', distinct=True), total_quantity=Sum('quantity'))
        .order_by('-quote_count', '-total_quantity', 'product_id')[:TOP_PRODUCTS_LIMIT]
    )
    return [
        {
            'product_id': row['product_id'],
            'name': row['product__name'],
            'brand': row['product__brand'],
            'quote_count': row['quote_count'],
            'total_quantity': row['total_quantity'],
        }
        for row in rows
    ]


@cached_query(cache_ttl=DASHBOARD_KPI_CACHE_TTL, key_prefix=DASHBOARD_NAMESPACE)
def build_dashboard_summary():
    now = timezone.now()
    logger.debug("Building dashboard summary")
    return {
        'products': product_summary(),
        'quotes': quote_summary(now),
        'media': media_summary(),
        'recent_quotes': recent_quotes(),
        'top_requested_products': top_requested_products(),
        'generated_at': now.isoformat(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewAnalytics])
def dashboard(request):
    """Catalog, quote and media KPIs for the admin dashboard"""
    response = Response(build_dashboard_summary())
    response['Cache-Control'] = 'private, max-age=60'
    return response
