"""
Caching for the storage hierarchy lists: locations and boxes.

Both lists are read on almost every warehouse screen and change rarely,
so the serialized responses are cached and dropped by signals
(see ``backend.core.cache_signals``) whenever a location, box or stock
row changes.
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

# Cache key prefixes
LOCATION_LIST_KEY = 'location_list:all'
BOX_LIST_KEY_PREFIX = 'box_list:'

# Cache TTL (Time To Live) in seconds
LOCATION_LIST_CACHE_TTL = 600  # 10 minutes
BOX_LIST_CACHE_TTL = 300  # 5 minutes


def get_location_list_cache_key() -> str:
    """Get cache key for the location list"""
    return LOCATION_LIST_KEY


def get_box_list_cache_key(location_id=None) -> str:
    """Get cache key for the box list, optionally filtered by location"""
    return f"{BOX_LIST_KEY_PREFIX}{location_id or 'all'}"


def get_cached_list(cache_key):
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache hit for {cache_key}")
    return cached_data


def cache_list(cache_key, data, ttl):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached {cache_key} ({len(data)} rows)")


def invalidate_location_cache():
    """Drop the cached location list"""
    cache.delete(get_location_list_cache_key())
    logger.debug("Invalidated location list cache")


def invalidate_box_cache(location_id=None):
    """Drop the cached box lists (unfiltered and for ``location_id``)"""
    keys = [get_box_list_cache_key()]
    if location_id:
        keys.append(get_box_list_cache_key(location_id))
    cache.delete_many(keys)
    logger.debug(f"Invalidated box list cache for location {location_id or 'all'}")
