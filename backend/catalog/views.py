import logging

from django.db import transaction
from django.db.models.deletion import ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from backend.core.cache_utils import get_cached_products_list, cache_products_list
from backend.core.exceptions import validation_error_response, error_response
from backend.core.pagination import paginate_queryset
from backend.core.permissions import CanManageProducts, CanManageProductsOrReadOnly
from backend.core.sanitizers import MAX_INTEGER, MAX_RECORD_ID, sanitize_number, sanitize_pagination
from backend.core.throttling import ProductsReadOnlyThrottle, ProductsWriteOnlyThrottle
from backend.core.utils import create_audit_log
from .filters import ProductFilter, ORDERING_FIELDS, DEFAULT_ORDERING
from .models import Product, ProductImage, BulkDiscount, ProductCategory, AvailabilityStatus
from .serializers import ProductSerializer, ProductImageSerializer, product_audit_data
from .validation import sanitize_product_data, validate_product_data, parse_price

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('backend.security')

PRODUCT_FIELDS = [
    'name', 'description', 'category', 'brand', 'diameter', 'length', 'material',
    'pressure_rating', 'temperature', 'standards', 'applications', 'base_price',
    'currency', 'price_per_unit', 'availability',
]

LIST_PARAMS = ['search', 'category', 'brand', 'material', 'availability', 'min_price', 'max_price', 'ordering']


def product_queryset():
    return Product.objects.prefetch_related('images', 'documents', 'bulk_discounts')


def _model_fields(data):
    fields = {field: data[field] for field in PRODUCT_FIELDS if field in data and data[field] is not None}
    if 'base_price' in fields:
        fields['base_price'] = parse_price(fields['base_price'])
    return fields


def replace_bulk_discounts(product, discounts):
    """Replace the product's bulk discounts with `discounts`, sorted by min_quantity"""
    product.bulk_discounts.all().delete()
    entries = sorted(discounts or [], key=lambda entry: entry['min_quantity'])
    BulkDiscount.objects.bulk_create([
        BulkDiscount(
            product=product,
            min_quantity=int(entry['min_quantity']),
            discount=parse_price(entry['discount']),
        )
        for entry in entries
    ])


def _list_cache_params(query_params):
    page, limit, _ = sanitize_pagination(query_params.get('page'), query_params.get('limit'))
    params = {name: query_params.get(name, '') for name in LIST_PARAMS}
    params['page'] = page
    params['limit'] = limit
    return params


@api_view(['GET', 'POST'])
@permission_classes([CanManageProductsOrReadOnly])
@throttle_classes([ProductsReadOnlyThrottle, ProductsWriteOnlyThrottle])
def product_list_create(request):
    """List products (public, filtered, paginated, cached) or create a product"""
    if request.method == 'GET':
        cache_params = _list_cache_params(request.query_params)
        cached_data, cache_key = get_cached_products_list(cache_params)
        if cached_data is not None:
            return Response(cached_data)

        queryset = product_queryset().order_by(*ORDERING_FIELDS[DEFAULT_ORDERING])
        filterset = ProductFilter(request.query_params, queryset=queryset)
        products, pagination = paginate_queryset(filterset.qs, request.query_params)

        data = {
            'products': ProductSerializer(products, many=True).data,
            'pagination': pagination,
        }
        cache_products_list(cache_key, data)
        return Response(data)

    payload = request.data if isinstance(request.data, dict) else {}
    data = sanitize_product_data(payload)
    errors = validate_product_data(data)
    if errors:
        return validation_error_response(errors)

    with transaction.atomic():
        product = Product.objects.create(**_model_fields(data))
        replace_bulk_discounts(product, data.get('bulk_discounts'))

    security_logger.info(f"Product {product.id} created by {request.user.email}")
    create_audit_log(
        request=request,
        action='CREATE',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        new_data=product_audit_data(product),
    )
    return Response(ProductSerializer(product_queryset().get(pk=product.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([CanManageProductsOrReadOnly])
@throttle_classes([ProductsReadOnlyThrottle, ProductsWriteOnlyThrottle])
def product_detail(request, pk):
    """Retrieve (public), update or delete a product"""
    product = get_object_or_404(product_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    elif request.method in ('PUT', 'PATCH'):
        payload = request.data if isinstance(request.data, dict) else {}
        data = sanitize_product_data(payload)
        errors = validate_product_data(data, is_update=True)
        if errors:
            return validation_error_response(errors)

        old_data = product_audit_data(product)
        with transaction.atomic():
            fields = _model_fields(data)
            for field, value in fields.items():
                setattr(product, field, value)
            product.save()
            if 'bulk_discounts' in data and data['bulk_discounts'] is not None:
                replace_bulk_discounts(product, data['bulk_discounts'])

        product = product_queryset().get(pk=product.pk)
        create_audit_log(
            request=request,
            action='UPDATE',
            model_name='Product',
            object_id=product.id,
            object_name=product.name,
            old_data=old_data,
            new_data=product_audit_data(product),
        )
        return Response(ProductSerializer(product).data)

    else:  # DELETE
        if product.quote_items.exists():
            return error_response(
                'Cannot delete product that is referenced by quote requests',
                status.HTTP_409_CONFLICT,
            )
        old_data = product_audit_data(product)
        product_id, product_name = product.id, product.name
        try:
            product.delete()
        except ProtectedError:
            return error_response(
                'Cannot delete product that is referenced by quote requests',
                status.HTTP_409_CONFLICT,
            )
        create_audit_log(
            request=request,
            action='DELETE',
            model_name='Product',
            object_id=product_id,
            object_name=product_name,
            old_data=old_data,
        )
        return Response({'message': 'Product deleted successfully'})


@api_view(['GET'])
@permission_classes([AllowAny])
@throttle_classes([ProductsReadOnlyThrottle])
def product_filter_options(request):
    """Distinct brands and materials plus category/availability choices"""
    brands = (
        Product.objects.exclude(brand='').order_by('brand')
        .values_list('brand', flat=True).distinct()
    )
    materials = (
        Product.objects.exclude(material='').order_by('material')
        .values_list('material', flat=True).distinct()
    )
    return Response({
        'brands': list(brands),
        'materials': list(materials),
        'categories': [{'value': value, 'label': label} for value, label in ProductCategory.choices],
        'availability': [{'value': value, 'label': label} for value, label in AvailabilityStatus.choices],
        'ordering': list(ORDERING_FIELDS.keys()),
    })


@api_view(['GET'])
@permission_classes([AllowAny])
@throttle_classes([ProductsReadOnlyThrottle])
def product_price(request, pk):
    """Unit price and line total for ?quantity=n after bulk discounts"""
    product = get_object_or_404(Product, pk=pk)
    quantity = sanitize_number(request.query_params.get('quantity', 1), min_value=1, max_value=MAX_INTEGER, integer=True)
    if quantity is None:
        return validation_error_response([
            {'field': 'quantity', 'message': 'Quantity must be a positive integer', 'code': 'INVALID_QUANTITY'}
        ])

    discount = product.get_applicable_discount(quantity)
    unit_price, rate, total = product.get_price_for_quantity(quantity)
    return Response({
        'product_id': product.id,
        'quantity': quantity,
        'base_price': product.base_price,
        'currency': product.currency,
        'discount': rate,
        'min_quantity': discount.min_quantity if discount else None,
        'unit_price': unit_price,
        'total': total,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanManageProducts])
@throttle_classes([ProductsWriteOnlyThrottle])
def product_images(request, pk):
    """Attach an image to a product by `url` or by `media_id`"""
    product = get_object_or_404(Product, pk=pk)
    payload = request.data if isinstance(request.data, dict) else {}
    media_id = payload.get('media_id')
    url = payload.get('url')
    url = url.strip() if isinstance(url, str) else ''
    alt = payload.get('alt')
    alt = alt.strip()[:255] if isinstance(alt, str) else ''

    media = None
    if media_id:
        media_id = sanitize_number(media_id, min_value=1, max_value=MAX_RECORD_ID, integer=True)
        if media_id is None:
            return validation_error_response([
                {'field': 'media_id', 'message': 'Media ID must be a positive integer', 'code': 'INVALID_MEDIA_ID'}
            ])
        from backend.media.models import Media, MediaType
        media = Media.objects.filter(pk=media_id).first()
        if media is None:
            return error_response('Media not found', status.HTTP_404_NOT_FOUND)
        if media.type != MediaType.IMAGE:
            return validation_error_response([
                {'field': 'media_id', 'message': 'Media must be an image', 'code': 'INVALID_MEDIA_TYPE'}
            ])
        url = media.url
        alt = alt or media.original_name
    elif not url:
        return validation_error_response([
            {'field': 'url', 'message': 'Either url or media_id is required', 'code': 'REQUIRED_FIELD_MISSING'}
        ])
    elif len(url) > 500:
        return validation_error_response([
            {'field': 'url', 'message': 'URL must be 500 characters or less', 'code': 'URL_TOO_LONG'}
        ])

    image = ProductImage.objects.create(product=product, url=url, alt=alt or product.name, media=media)
    create_audit_log(
        request=request,
        action='UPDATE',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        changes={'images': {'from': None, 'to': image.url}},
    )
    return Response(ProductImageSerializer(image).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, CanManageProducts])
@throttle_classes([ProductsWriteOnlyThrottle])
def product_image_detail(request, pk, image_id):
    """Detach an image from a product"""
    image = get_object_or_404(ProductImage, pk=image_id, product_id=pk)
    product = image.product
    image_url = image.url
    image.delete()
    create_audit_log(
        request=request,
        action='UPDATE',
        model_name='Product',
        object_id=product.id,
        object_name=product.name,
        changes={'images': {'from': image_url, 'to': None}},
    )
    return Response(status=status.HTTP_204_NO_CONTENT)
