"""
Caching utilities for expensive queries
Cache entries are grouped by namespace; bumping the namespace version
invalidates every entry of that namespace on Redis and local memory alike.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 120  # 2 minutes
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes

PRODUCTS_NAMESPACE = 'products_list'
DASHBOARD_NAMESPACE = 'dashboard_kpis'


def _version_key(namespace):
    return f"cache_version:{namespace}"


def get_namespace_version(namespace):
    version = cache.get(_version_key(namespace))
    if version is None:
        version = 1
        cache.add(_version_key(namespace), version, None)
    return version


def bump_namespace_version(namespace):
    try:
        cache.incr(_version_key(namespace))
    except ValueError:
        # Key missing (evicted or never set)
        cache.set(_version_key(namespace), 2, None)


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{get_namespace_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=300, key_prefix=DASHBOARD_NAMESPACE)
        def build_summary():
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def get_cached_products_list(filters_dict):
    """
    Get cached products list with filters
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(PRODUCTS_NAMESPACE, **filters_dict)
    cached_data = cache.get(cache_key)
    return cached_data, cache_key


def cache_products_list(cache_key, data, ttl=PRODUCTS_LIST_CACHE_TTL):
    """Cache products list data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached products list: {cache_key}")


def invalidate_products_cache():
    """Invalidate all products-related cache"""
    bump_namespace_version(PRODUCTS_NAMESPACE)
    logger.info("Invalidated products cache")


def invalidate_dashboard_cache():
    """Invalidate dashboard KPIs cache"""
    bump_namespace_version(DASHBOARD_NAMESPACE)
    logger.info("Invalidated dashboard cache")
