import django_filters
from django.db.models import Q

from backend.core.sanitizers import sanitize_number, sanitize_search_query
from .models import Product, ProductCategory, AvailabilityStatus

# brand/material filters are truncated to this many characters
MAX_FILTER_TEXT_LENGTH = 50

ORDERING_FIELDS = {
    'name-asc': ('name', 'id'),
    'name-desc': ('-name', '-id'),
    'price-asc': ('base_price', 'id'),
    'price-desc': ('-base_price', '-id'),
    'newest': ('-created_at', '-id'),
    'oldest': ('created_at', 'id'),
}
DEFAULT_ORDERING = 'newest'


class ProductFilter(django_filters.FilterSet):
    """
    Public catalog filter.

    Invalid values are ignored rather than rejected so that a stale
    bookmark still returns the unfiltered catalog.
    """

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(method='filter_category', label='Category')
    brand = django_filters.CharFilter(method='filter_contains', label='Brand')
    material = django_filters.CharFilter(method='filter_contains', label='Material')
    availability = django_filters.CharFilter(method='filter_availability', label='Availability')
    min_price = django_filters.CharFilter(method='filter_min_price', label='Minimum price')
    max_price = django_filters.CharFilter(method='filter_max_price', label='Maximum price')
    ordering = django_filters.CharFilter(method='filter_ordering', label='Ordering')

    class Meta:
        model = Product
        fields = ['search', 'category', 'brand', 'material', 'availability', 'min_price', 'max_price', 'ordering']

    def filter_search(self, queryset, name, value):
        """Search name, description, brand and material"""
        search = sanitize_search_query(value)
        if not search:
            return queryset
        return queryset.filter(
            Q(name__icontains=search) |
            Q(description__icontains=search) |
            Q(brand__icontains=search) |
            Q(material__icontains=search)
        )

    def filter_category(self, queryset, name, value):
        if value not in ProductCategory.values:
            return queryset
        return queryset.filter(category=value)

    def filter_availability(self, queryset, name, value):
        if value not in AvailabilityStatus.values:
            return queryset
        return queryset.filter(availability=value)

    def filter_contains(self, queryset, name, value):
        value = (value or '').strip()[:MAX_FILTER_TEXT_LENGTH]
        if not value:
            return queryset
        return queryset.filter(**{f'{name}__icontains': value})

    def filter_min_price(self, queryset, name, value):
        price = sanitize_number(value, min_value=0, max_value=1000000)
        if price is None:
            return queryset
        return queryset.filter(base_price__gte=price)

    def filter_max_price(self, queryset, name, value):
        price = sanitize_number(value, min_value=0, max_value=1000000)
        if price is None:
            return queryset
        return queryset.filter(base_price__lte=price)

    def filter_ordering(self, queryset, name, value):
        fields = ORDERING_FIELDS.get(value)
        if not fields:
            return queryset
        return queryset.order_by(*fields)
