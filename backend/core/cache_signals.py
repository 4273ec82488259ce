"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_products_cache, invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

PRODUCT_MODELS = ('Product', 'ProductImage', 'ProductDocument', 'BulkDiscount')
DASHBOARD_MODELS = ('Product', 'QuoteRequest', 'QuoteProduct', 'Media')


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations (seeding) to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def _invalidate_now_and_on_commit(invalidate):
    def run():
        try:
            invalidate()
        except Exception as e:
            logger.warning(f"Error invalidating cache: {e}")
    run()
    # Again after commit, in case a reader cached pre-commit rows meanwhile
    transaction.on_commit(run)


@receiver([post_save, post_delete])
def invalidate_products_cache_signal(sender, instance, **kwargs):
    """Invalidate products cache when products or their children change"""
    if is_suspended() or sender.__name__ not in PRODUCT_MODELS:
        return
    if sender._meta.app_label != 'catalog':
        return
    _invalidate_now_and_on_commit(invalidate_products_cache)


@receiver([post_save, post_delete])
def invalidate_dashboard_cache_signal(sender, instance, **kwargs):
    """Invalidate dashboard cache when quotes, media or products change"""
    if is_suspended() or sender.__name__ not in DASHBOARD_MODELS:
        return
    if sender._meta.app_label not in ('catalog', 'quotes', 'media'):
        return
    _invalidate_now_and_on_commit(invalidate_dashboard_cache)
