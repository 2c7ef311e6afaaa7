"""
Read-through cache for single-product lookups.

Entries live in a local cachetools TTLCache (least-recently-used eviction once
full, per-entry TTL). When a Redis URL is configured and reachable, Redis is
the cache shared by every instance: reads and writes go to it, and the local
tier is only used for an operation whose Redis call failed. All access to the
local tier happens under one lock.

Every evict bumps a per-id generation. A reader takes the generation before it
loads from storage and stores through set_if_unchanged, so a load that raced
with a write is never put back in the cache. Generations are per process.
"""
import json
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import redis
from cachetools import TTLCache

from catalog.core_settings import get_settings
from shared.core import get_logger

logger = get_logger(__name__)

@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    size: int = 0
    maxsize: int = 0

    def to_dict(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "size": self.size,
            "maxsize": self.maxsize,
            "hit_rate": round(self.hits / total, 4) if total else 0.0,
        }

class ProductCache:
    KEY_PREFIX = "product:"

    def __init__(self, maxsize: int = 1024, ttl_seconds: int = 60, redis_url: Optional[str] = None):
        self._local = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._ttl = ttl_seconds
        self._lock = threading.RLock()
        self._stats = CacheStats(maxsize=maxsize)
        self._epoch = 0
        self._generations: Dict[str, int] = {}
        self._redis: Optional[redis.Redis] = None
        if redis_url:
            self._redis = self._connect(redis_url)

    @staticmethod
    def _connect(redis_url: str) -> Optional[redis.Redis]:
        try:
            client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
            client.ping()
            logger.info("Product cache using Redis tier")
            return client
        except redis.RedisError as e:
            logger.warning(f"Redis unavailable, product cache is local only: {e}")
            return None

    def _key(self, product_id: int) -> str:
        return f"{self.KEY_PREFIX}{product_id}"

    def _record(self, hit: bool, key: str) -> None:
        with self._lock:
            if hit:
                self._stats.hits += 1
            else:
                self._stats.misses += 1
                logger.debug(f"Cache miss: {key}")

    def generation(self, product_id: int) -> Tuple[int, int]:
        """Token that changes whenever the entry for this id is evicted or the cache cleared."""
        with self._lock:
            return self._epoch, self._generations.get(self._key(product_id), 0)

    def get(self, product_id: int) -> Optional[Dict[str, Any]]:
        """Cached product representation, or None on a miss."""
        key = self._key(product_id)
        if self._redis is not None:
            try:
                raw = self._redis.get(key)
                self._record(raw is not None, key)
                return json.loads(raw) if raw is not None else None
            except redis.RedisError as e:
                logger.warning(f"Redis get failed for {key}: {e}")
        with self._lock:
            value = self._local.get(key)
            self._record(value is not None, key)
            return dict(value) if value is not None else None

    def set(self, product_id: int, value: Dict[str, Any]) -> None:
        key = self._key(product_id)
        if self._redis is not None:
            try:
                self._redis.setex(key, self._ttl, json.dumps(value))
                return
            except redis.RedisError as e:
                logger.warning(f"Redis set failed for {key}: {e}")
        with self._lock:
            self._local[key] = dict(value)

    def set_if_unchanged(self, product_id: int, generation: Tuple[int, int], value: Dict[str, Any]) -> bool:
        """Store the value only if nothing evicted this id since generation was taken."""
        with self._lock:
            if self.generation(product_id) != generation:
                logger.debug(f"Cache store skipped, entry changed: {self._key(product_id)}")
                return False
            self.set(product_id, value)
            return True

    def evict(self, product_id: int) -> None:
        """Drop the entry for this id from every tier."""
        key = self._key(product_id)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            removed = self._local.pop(key, None) is not None
            if self._redis is not None:
                try:
                    removed = bool(self._redis.delete(key)) or removed
                except redis.RedisError as e:
                    logger.warning(f"Redis delete failed for {key}: {e}")
            if removed:
                self._stats.invalidations += 1
                logger.debug(f"Cache evicted: {key}")

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._generations.clear()
            if self._redis is not None:
                try:
                    for key in self._redis.scan_iter(match=f"{self.KEY_PREFIX}*"):
                        self._redis.delete(key)
                except redis.RedisError as e:
                    logger.warning(f"Redis clear failed: {e}")
            self._local.clear()
            self._stats = CacheStats(maxsize=self._stats.maxsize)

    def __contains__(self, product_id: int) -> bool:
        key = self._key(product_id)
        if self._redis is not None:
            try:
                return bool(self._redis.exists(key))
            except redis.RedisError as e:
                logger.warning(f"Redis exists failed for {key}: {e}")
        with self._lock:
            return key in self._local

    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._local)
            return CacheStats(**vars(self._stats))

@lru_cache
def get_product_cache() -> ProductCache:
    settings = get_settings()
    return ProductCache(
        maxsize=settings.CACHE_MAXSIZE,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        redis_url=settings.REDIS_URL,
    )
