"""Dashboard cache: Redis when configured and reachable, else an in-process TTL cache."""
import json
import logging
import threading
from typing import Optional

import redis
from cachetools import TTLCache

from marketplace.core_settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
redis_client: Optional[redis.Redis] = None
local_cache = TTLCache(maxsize=1024, ttl=settings.DASHBOARD_CACHE_TTL)
# TTLCache is not thread-safe and sync routes run in the threadpool
local_lock = threading.Lock()

RESTAURANT_ORDERS_PREFIX = "restaurant-orders"


def init_cache() -> None:
    """Connect to Redis if REDIS_URL is set; a failed ping keeps the local cache."""
    global redis_client
    if not settings.REDIS_URL:
        redis_client = None
        return
    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=1)
        client.ping()
        redis_client = client
        logger.info("Dashboard cache using Redis")
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable, using local cache: {e}")
        redis_client = None


def cache_get(key: str):
    """Retrieve cached value if present."""
    if redis_client:
        try:
            val = redis_client.get(key)
            if val is not None:
                return json.loads(val)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
    with local_lock:
        return local_cache.get(key)


def cache_set(key: str, value, ttl: Optional[int] = None):
    """Set a cache value with TTL."""
    ttl = ttl or settings.DASHBOARD_CACHE_TTL
    if redis_client:
        try:
            redis_client.setex(key, ttl, json.dumps(value))
            return
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
    with local_lock:
        local_cache[key] = value


def cache_delete_pattern(patterns: list[str]):
    """Delete cache entries whose keys start with any of the provided prefixes."""
    for prefix in patterns:
        with local_lock:
            for key in tuple(local_cache.keys()):  # tuple snapshot
                if key.startswith(prefix):
                    local_cache.pop(key, None)
        if redis_client:
            try:
                for key in redis_client.scan_iter(match=f"{prefix}*"):
                    redis_client.delete(key)
            except redis.RedisError as e:
                logger.warning(f"Cache purge failed for {prefix}: {e}")


def restaurant_orders_key(restaurant_id: int, status: Optional[str] = None) -> str:
    return f"{RESTAURANT_ORDERS_PREFIX}:{restaurant_id}:{status or 'ALL'}"


def invalidate_restaurant_orders(restaurant_id: int) -> None:
    # Trailing colon keeps restaurant 1 from matching restaurant 12
    cache_delete_pattern([f"{RESTAURANT_ORDERS_PREFIX}:{restaurant_id}:"])
