import math

from .sanitizers import sanitize_pagination


def paginate_queryset(queryset, query_params, default_limit=20):
    """
    Slice a queryset by the `page` / `limit` query parameters.

    Returns (items, pagination) where pagination is
    {page, limit, total, pages}.
    """
    page, limit, offset = sanitize_pagination(
        query_params.get('page'), query_params.get('limit'), default_limit=default_limit
    )
    total = queryset.count()
    items = list(queryset[offset:offset + limit])
    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': math.ceil(total / limit) if total else 0,
    }
