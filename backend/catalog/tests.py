"""
Test suite for the catalog module
Tests: public listing, filtering, caching, product CRUD validation,
bulk pricing and product images
"""
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.throttling import ProductsReadThrottle
from backend.media.models import MediaType
from .models import Product, BulkDiscount, ProductCategory, AvailabilityStatus
from .validation import sanitize_product_data, validate_product_data, parse_price


class ProductPricingTests(TestCase):
    """Test bulk discount selection and price calculation"""

    def setUp(self):
        self.product = TestDataFactory.create_product(
            base_price='100.00', discounts=[(10, '0.05'), (50, '0.10'), (100, '0.15')],
        )

    def test_no_discount_below_first_tier(self):
        unit_price, rate, total = self.product.get_price_for_quantity(9)
        self.assertEqual(unit_price, Decimal('100.00'))
        self.assertEqual(rate, Decimal('0'))
        self.assertEqual(total, Decimal('900.00'))

    def test_largest_applicable_tier_wins(self):
        unit_price, rate, total = self.product.get_price_for_quantity(60)
        self.assertEqual(rate, Decimal('0.10'))
        self.assertEqual(unit_price, Decimal('90.00'))
        self.assertEqual(total, Decimal('5400.00'))

    def test_tier_applies_at_exact_minimum(self):
        self.assertEqual(self.product.get_applicable_discount(100).min_quantity, 100)

    def test_unit_price_rounds_half_up(self):
        product = TestDataFactory.create_product(base_price='45.99', discounts=[(10, '0.05')])
        unit_price, _, _ = product.get_price_for_quantity(10)
        self.assertEqual(unit_price, Decimal('43.69'))


class ProductValidationTests(TestCase):
    """Test payload sanitization and validation"""

    def codes(self, data, is_update=False):
        return [error['code'] for error in validate_product_data(sanitize_product_data(data), is_update)]

    def test_valid_payload(self):
        self.assertEqual(self.codes(TestDataFactory.product_payload()), [])

    def test_missing_required_fields(self):
        errors = validate_product_data({})
        fields = {error['field'] for error in errors}
        self.assertIn('name', fields)
        self.assertIn('base_price', fields)
        self.assertTrue(all(error['code'] == 'REQUIRED_FIELD_MISSING' for error in errors))

    def test_blank_name_counts_as_missing_after_trim(self):
        self.assertIn('REQUIRED_FIELD_MISSING', self.codes(TestDataFactory.product_payload(name='   ')))

    def test_invalid_values(self):
        self.assertIn('INVALID_CATEGORY', self.codes(TestDataFactory.product_payload(category='COPPER')))
        self.assertIn('NEGATIVE_PRICE', self.codes(TestDataFactory.product_payload(base_price=-1)))
        self.assertIn('PRICE_TOO_HIGH', self.codes(TestDataFactory.product_payload(base_price=2000000)))
        self.assertIn('INVALID_PRICE', self.codes(TestDataFactory.product_payload(base_price='cheap')))
        self.assertIn('INVALID_CURRENCY', self.codes(TestDataFactory.product_payload(currency='JPY')))
        self.assertIn('NAME_TOO_LONG', self.codes(TestDataFactory.product_payload(name='x' * 256)))
        self.assertIn('INVALID_STANDARDS', self.codes(TestDataFactory.product_payload(standards='ASTM')))

    def test_blank_list_entries_are_dropped(self):
        data = sanitize_product_data(TestDataFactory.product_payload(standards=[' ASTM A53 ', '  ']))
        self.assertEqual(data['standards'], ['ASTM A53'])

    def test_bulk_discount_rules(self):
        payload = TestDataFactory.product_payload(bulk_discounts=[
            {'min_quantity': 0, 'discount': 0.1},
            {'min_quantity': 10, 'discount': 1.5},
        ])
        codes = self.codes(payload)
        self.assertIn('INVALID_MIN_QUANTITY', codes)
        self.assertIn('INVALID_DISCOUNT', codes)

        payload = TestDataFactory.product_payload(bulk_discounts=[
            {'min_quantity': 10, 'discount': 0.05},
            {'min_quantity': 10, 'discount': 0.10},
        ])
        self.assertIn('DUPLICATE_MIN_QUANTITIES', self.codes(payload))

        payload = TestDataFactory.product_payload(bulk_discounts=[{'min_quantity': 10 ** 20, 'discount': 0.1}])
        self.assertEqual(self.codes(payload), ['INVALID_MIN_QUANTITY'])

    def test_update_allows_partial_payload(self):
        self.assertEqual(self.codes({'base_price': 10}, is_update=True), [])

    def test_parse_price(self):
        self.assertEqual(parse_price('12.50'), Decimal('12.50'))
        self.assertIsNone(parse_price(True))
        self.assertIsNone(parse_price('NaN'))
        self.assertIsNone(parse_price(['1']))


class ProductListTests(TestCase):
    """Test the public product listing"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.steel = TestDataFactory.create_product(
            name='Carbon Steel Pipe', base_price='45.99', brand='SteelCorp', material='Carbon Steel',
        )
        self.pvc = TestDataFactory.create_product(
            name='PVC Schedule 40', base_price='12.00', category=ProductCategory.PVC_PIPE,
            brand='PlastiFlow', material='PVC', availability=AvailabilityStatus.OUT_OF_STOCK,
        )
        self.copper = TestDataFactory.create_product(
            name='Copper Type L', base_price='67.25', category=ProductCategory.COPPER_PIPE,
            brand='CopperMax', material='Type L Copper',
        )

    def names(self, query=''):
        response = self.client.get(f'/api/v1/products/{query}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return [product['name'] for product in response.data['products']]

    def test_list_is_public_and_paginated(self):
        response = self.client.get('/api/v1/products/?limit=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['products']), 2)
        self.assertEqual(response.data['pagination'], {'page': 1, 'limit': 2, 'total': 3, 'pages': 2})

    def test_newest_first_by_default(self):
        self.assertEqual(self.names(), ['Copper Type L', 'PVC Schedule 40', 'Carbon Steel Pipe'])

    def test_filters(self):
        self.assertEqual(self.names('?category=PVC_PIPE'), ['PVC Schedule 40'])
        self.assertEqual(self.names('?brand=copper'), ['Copper Type L'])
        self.assertEqual(self.names('?material=steel'), ['Carbon Steel Pipe'])
        self.assertEqual(self.names('?availability=OUT_OF_STOCK'), ['PVC Schedule 40'])
        self.assertEqual(self.names('?min_price=40&max_price=50'), ['Carbon Steel Pipe'])
        self.assertEqual(self.names('?search=schedule'), ['PVC Schedule 40'])

    def test_out_of_range_page_is_empty(self):
        response = self.client.get('/api/v1/products/?page=1e18')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['products'], [])
        self.assertEqual(response.data['pagination']['page'], 100000)

    @patch.object(ProductsReadThrottle, 'rate', '2/15m', create=True)
    def test_public_reads_are_rate_limited(self):
        self.names()
        self.names('?page=2')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    def test_invalid_filter_values_are_ignored(self):
        self.assertEqual(len(self.names('?category=UNKNOWN&min_price=abc&ordering=random')), 3)

    def test_ordering(self):
        self.assertEqual(self.names('?ordering=price-asc'), ['PVC Schedule 40', 'Carbon Steel Pipe', 'Copper Type L'])
        self.assertEqual(self.names('?ordering=name-asc'), ['Carbon Steel Pipe', 'Copper Type L', 'PVC Schedule 40'])

    def test_list_is_cached_until_products_change(self):
        self.names()
        # update() skips signals so the cached page is served
        Product.objects.filter(pk=self.steel.pk).update(name='Renamed Pipe')
        self.assertIn('Carbon Steel Pipe', self.names())

        TestDataFactory.create_product(name='Flexible Hose', category=ProductCategory.FLEXIBLE_PIPE)
        names = self.names()
        self.assertIn('Flexible Hose', names)
        self.assertIn('Renamed Pipe', names)

    def test_filter_options(self):
        response = self.client.get('/api/v1/products/filter-options/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['brands'], ['CopperMax', 'PlastiFlow', 'SteelCorp'])
        self.assertIn({'value': 'STEEL_PIPE', 'label': 'Steel Pipe'}, response.data['categories'])
        self.assertIn('price-desc', response.data['ordering'])

    def test_detail_and_missing_product(self):
        response = self.client.get(f'/api/v1/products/{self.steel.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['base_price'], Decimal('45.99'))
        self.assertEqual(response.data['category_display'], 'Steel Pipe')

        response = self.client.get('/api/v1/products/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductPriceEndpointTests(TestCase):
    """Test the quantity price endpoint"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product(base_price='100.00', discounts=[(10, '0.05'), (50, '0.10')])

    def test_price_for_quantity(self):
        response = self.client.get(f'/api/v1/products/{self.product.id}/price/?quantity=60')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['unit_price'], Decimal('90.00'))
        self.assertEqual(response.data['total'], Decimal('5400.00'))
        self.assertEqual(response.data['min_quantity'], 50)

    def test_default_quantity_is_one(self):
        response = self.client.get(f'/api/v1/products/{self.product.id}/price/')
        self.assertEqual(response.data['quantity'], 1)
        self.assertIsNone(response.data['min_quantity'])

    def test_invalid_quantity(self):
        response = self.client.get(f'/api/v1/products/{self.product.id}/price/?quantity=0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'INVALID_QUANTITY')

        response = self.client.get(f'/api/v1/products/{self.product.id}/price/?quantity=100000000000000000000')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductManagementTests(TestCase):
    """Test product create, update and delete"""

    def setUp(self):
        cache.clear()
        self.manager = TestDataFactory.create_content_manager()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_requires_authentication(self):
        self.client.logout()
        response = self.client.post('/api/v1/products/', TestDataFactory.product_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_requires_product_permission(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/products/', TestDataFactory.product_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_product_with_discounts(self):
        payload = TestDataFactory.product_payload(
            name='  Black Steel Pipe  ',
            bulk_discounts=[{'min_quantity': 50, 'discount': 0.1}, {'min_quantity': 10, 'discount': 0.05}],
        )
        response = self.client.post('/api/v1/products/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Black Steel Pipe')
        self.assertEqual([d['min_quantity'] for d in response.data['bulk_discounts']], [10, 50])

        audit = AuditLog.objects.get(action='CREATE', model_name='Product')
        self.assertEqual(audit.user, self.manager)
        self.assertEqual(audit.changes['name'], {'from': None, 'to': 'Black Steel Pipe'})

    def test_create_invalid_product(self):
        response = self.client.post('/api/v1/products/', TestDataFactory.product_payload(base_price=-5), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Validation failed')
        self.assertEqual(response.data['details'], 'Base price must be positive')
        self.assertEqual(Product.objects.count(), 0)

    def test_partial_update_records_changes(self):
        product = TestDataFactory.create_product(base_price='10.00', discounts=[(10, '0.05')])
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'base_price': 12.5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['base_price'], Decimal('12.50'))
        self.assertEqual(len(response.data['bulk_discounts']), 1)

        audit = AuditLog.objects.get(action='UPDATE', model_name='Product')
        self.assertEqual(list(audit.changes.keys()), ['base_price'])

    def test_update_replaces_bulk_discounts(self):
        product = TestDataFactory.create_product(discounts=[(10, '0.05'), (50, '0.10')])
        response = self.client.put(
            f'/api/v1/products/{product.id}/',
            {'bulk_discounts': [{'min_quantity': 25, 'discount': 0.2}]},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(BulkDiscount.objects.filter(product=product).values_list('min_quantity', flat=True)), [25])

    def test_delete_product(self):
        product = TestDataFactory.create_product()
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action='DELETE', model_name='Product').exists())

    def test_delete_quoted_product_conflicts(self):
        product = TestDataFactory.create_product()
        TestDataFactory.create_quote(products=[(product, 5)])
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())


class ProductImageTests(TestCase):
    """Test attaching and detaching gallery images"""

    def setUp(self):
        cache.clear()
        self.product = TestDataFactory.create_product()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_content_manager())
        self.url = f'/api/v1/products/{self.product.id}/images/'

    def test_attach_by_url(self):
        response = self.client.post(self.url, {'url': 'https://cdn.example.com/pipe.jpg'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['alt'], self.product.name)

    def test_attach_from_media_library(self):
        media = TestDataFactory.create_media(media_type=MediaType.IMAGE, mime_type='image/jpeg', original_name='elbow.jpg')
        response = self.client.post(self.url, {'media_id': media.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['url'], media.url)
        self.assertEqual(response.data['alt'], 'elbow.jpg')

    def test_attach_rejects_document_media(self):
        media = TestDataFactory.create_media()
        response = self.client.post(self.url, {'media_id': media.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_attach_requires_source(self):
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'REQUIRED_FIELD_MISSING')

    def test_attach_rejects_malformed_body(self):
        response = self.client.post(self.url, [{'url': 'https://cdn.example.com/pipe.jpg'}], format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url, {'media_id': 'abc', 'url': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['validation_errors'][0]['code'], 'INVALID_MEDIA_ID')
        self.assertFalse(self.product.images.exists())

    def test_detach_image(self):
        image_id = self.client.post(self.url, {'url': '/media/uploads/a.jpg'}, format='json').data['id']
        response = self.client.delete(f'{self.url}{image_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(self.product.images.exists())
