"""
Cache invalidation signals
Automatically invalidate the location and box list caches when data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .model_cache import invalidate_location_cache, invalidate_box_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Used by bulk imports; the caller invalidates once after the block.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_storage_caches(location_id=None):
    """Drop the location list and the box lists touched by a bulk change"""
    invalidate_location_cache()
    invalidate_box_cache(location_id)


@receiver([post_save, post_delete])
def invalidate_storage_cache(sender, instance, **kwargs):
    """Invalidate location/box lists when locations, boxes or stock rows change"""
    if is_suspended():
        return

    model_name = sender.__name__

    if model_name == 'Location':
        invalidate_location_cache()
        invalidate_box_cache(instance.pk)
    elif model_name == 'Box':
        # box_count on the location list changes with boxes
        invalidate_location_cache()
        invalidate_box_cache(instance.location_id)
    elif model_name == 'ItemStock':
        location_id = instance.box.location_id if instance.box_id else None
        invalidate_box_cache(location_id)
