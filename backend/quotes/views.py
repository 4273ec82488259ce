import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.catalog.models import Product
from backend.core.exceptions import validation_error_response, error_response
from backend.core.pagination import paginate_queryset
from backend.core.permissions import CanManageQuotes, CanManageQuotesOrSubmit, IsAdminRole
from backend.core.sanitizers import sanitize_search_query
from backend.core.throttling import QuoteSubmitOnlyThrottle
from backend.core.utils import create_audit_log, get_client_ip
from .emails import (
    send_quote_notification_to_admin, send_quote_confirmation_to_customer, send_quote_response_to_customer,
)
from .models import QuoteRequest, QuoteProduct, QuoteStatus
from .serializers import QuoteRequestSerializer, quote_audit_data
from .validation import OPTIONAL_FIELDS, sanitize_quote_request, validate_quote_request, validate_quote_status

logger = logging.getLogger(__name__)

# A second identical pending submission inside this window is a duplicate
DUPLICATE_WINDOW = timedelta(minutes=10)


def quote_queryset():
    return QuoteRequest.objects.prefetch_related('products__product')


def find_duplicate_quote(email, product_ids):
    """Recent pending quote from `email` for exactly the same set of products"""
    since = timezone.now() - DUPLICATE_WINDOW
    candidates = QuoteRequest.objects.filter(
        customer_email__iexact=email,
        status=QuoteStatus.PENDING,
        submitted_at__gte=since,
    ).prefetch_related('products')
    wanted = set(product_ids)
    for quote in candidates:
        if {item.product_id for item in quote.products.all()} == wanted:
            return quote
    return None


def _create_quote(request, data):
    quote_fields = {field: data[field] for field in OPTIONAL_FIELDS if field in data}
    with transaction.atomic():
        quote = QuoteRequest.objects.create(
            customer_name=data['customer_name'],
            customer_email=data['customer_email'],
            ip_address=get_client_ip(request),
            **quote_fields,
        )
        QuoteProduct.objects.bulk_create([
            QuoteProduct(
                quote=quote,
                product_id=item['product_id'],
                quantity=item['quantity'],
                notes=item['notes'] or '',
            )
            for item in data['products']
        ])
    return quote


@api_view(['GET', 'POST'])
@permission_classes([CanManageQuotesOrSubmit])
@throttle_classes([QuoteSubmitOnlyThrottle])
def quote_list_create(request):
    """List quotes (MANAGE_QUOTES) or submit a quote request (public)"""
    if request.method == 'GET':
        queryset = quote_queryset().order_by('-submitted_at', '-id')

        status_filter = request.query_params.get('status')
        if status_filter:
            if not validate_quote_status(status_filter):
                return validation_error_response([{
                    'field': 'status',
                    'message': f"Status must be one of: {', '.join(QuoteStatus.values)}",
                    'code': 'INVALID_STATUS',
                }])
            queryset = queryset.filter(status=status_filter)

        search = sanitize_search_query(request.query_params.get('search'))
        if search:
            queryset = queryset.filter(
                Q(quote_number__icontains=search) |
                Q(customer_name__icontains=search) |
                Q(customer_email__icontains=search) |
                Q(company__icontains=search)
            )

        quotes, pagination = paginate_queryset(queryset, request.query_params, default_limit=10)
        return Response({
            'quotes': QuoteRequestSerializer(quotes, many=True).data,
            'pagination': pagination,
        })

    payload = request.data if isinstance(request.data, dict) else {}
    data = sanitize_quote_request(payload)
    errors = validate_quote_request(data)
    if errors:
        return validation_error_response(errors)

    product_ids = [item['product_id'] for item in data['products']]
    existing = set(Product.objects.filter(pk__in=product_ids).values_list('pk', flat=True))
    missing = sorted(set(product_ids) - existing)
    if missing:
        return validation_error_response([{
            'field': 'products',
            'message': f"Products not found: {', '.join(str(pk) for pk in missing)}",
            'code': 'PRODUCT_NOT_FOUND',
        }])

    duplicate = find_duplicate_quote(data['customer_email'], product_ids)
    if duplicate is not None:
        logger.info(f"Duplicate quote submission from {data['customer_email']} matches {duplicate.quote_number}")
        return error_response(
            'A similar quote request was submitted recently. Please wait before submitting again.',
            status.HTTP_409_CONFLICT,
            quote_number=duplicate.quote_number,
        )

    quote = _create_quote(request, data)
    quote = quote_queryset().get(pk=quote.pk)
    logger.info(f"Quote {quote.quote_number} submitted by {quote.customer_email} ({len(product_ids)} products)")

    send_quote_notification_to_admin(quote)
    send_quote_confirmation_to_customer(quote)

    create_audit_log(
        request=request,
        action='CREATE',
        model_name='QuoteRequest',
        object_id=quote.id,
        object_name=quote.quote_number,
        new_data={
            'quote_number': quote.quote_number,
            'customer_name': quote.customer_name,
            'customer_email': quote.customer_email,
            'products': [{'product_id': pid, 'quantity': item['quantity']}
                         for pid, item in zip(product_ids, data['products'])],
        },
    )
    return Response(QuoteRequestSerializer(quote).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, CanManageQuotes])
def quote_detail(request, pk):
    """Retrieve, respond to / change status of, or delete (ADMIN) a quote"""
    quote = get_object_or_404(quote_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(QuoteRequestSerializer(quote).data)

    elif request.method in ('PUT', 'PATCH'):
        payload = request.data if isinstance(request.data, dict) else {}
        new_status = payload.get('status')
        response_text = payload.get('response')

        errors = []
        if new_status is not None and not validate_quote_status(new_status):
            errors.append({
                'field': 'status',
                'message': f"Status must be one of: {', '.join(QuoteStatus.values)}",
                'code': 'INVALID_STATUS',
            })
        if response_text is not None and not isinstance(response_text, str):
            errors.append({'field': 'response', 'message': 'Response must be a string', 'code': 'INVALID_RESPONSE'})
        if errors:
            return validation_error_response(errors)

        old_data = quote_audit_data(quote)
        old_status = quote.status
        with transaction.atomic():
            if new_status is not None:
                quote.status = new_status
                if new_status == QuoteStatus.RESPONDED and old_status != QuoteStatus.RESPONDED:
                    quote.responded_at = timezone.now()
            if response_text is not None:
                quote.response = response_text.strip()
            quote.save()

        status_changed = quote.status != old_status
        create_audit_log(
            request=request,
            action='STATUS_CHANGE' if status_changed else 'UPDATE',
            model_name='QuoteRequest',
            object_id=quote.id,
            object_name=quote.quote_number,
            old_data=old_data,
            new_data=quote_audit_data(quote),
        )
        if status_changed:
            logger.info(f"Quote {quote.quote_number} moved {old_status} -> {quote.status} by {request.user.email}")
        if status_changed and quote.status == QuoteStatus.RESPONDED and quote.response:
            send_quote_response_to_customer(quote)

        return Response(QuoteRequestSerializer(quote_queryset().get(pk=quote.pk)).data)

    else:  # DELETE
        if not IsAdminRole().has_permission(request, None):
            return error_response('Admin access required', status.HTTP_403_FORBIDDEN)
        quote_id, quote_number = quote.id, quote.quote_number
        old_data = {
            'quote_number': quote.quote_number,
            'customer_email': quote.customer_email,
            'status': quote.status,
        }
        quote.delete()
        create_audit_log(
            request=request,
            action='DELETE',
            model_name='QuoteRequest',
            object_id=quote_id,
            object_name=quote_number,
            old_data=old_data,
        )
        return Response({'message': 'Quote deleted successfully'})
