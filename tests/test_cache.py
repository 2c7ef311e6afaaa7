import threading
import time

import redis

from catalog.application.cache import ProductCache

def test_miss_then_hit():
    cache = ProductCache(maxsize=4, ttl_seconds=60)
    assert cache.get(1) is None
    cache.set(1, {"id": 1, "name": "Widget"})
    assert cache.get(1) == {"id": 1, "name": "Widget"}
    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.size) == (1, 1, 1)

def test_returned_value_is_a_copy():
    cache = ProductCache()
    cache.set(1, {"id": 1, "name": "Widget"})
    cache.get(1)["name"] = "mutated"
    assert cache.get(1)["name"] == "Widget"

def test_least_recently_used_entry_is_evicted_when_full():
    cache = ProductCache(maxsize=2, ttl_seconds=60)
    cache.set(1, {"id": 1})
    cache.set(2, {"id": 2})
    cache.get(1)
    cache.set(3, {"id": 3})
    assert 1 in cache
    assert 2 not in cache
    assert 3 in cache

def test_entries_expire_after_ttl():
    cache = ProductCache(maxsize=4, ttl_seconds=1)
    cache.set(1, {"id": 1})
    time.sleep(1.1)
    assert cache.get(1) is None

def test_evict_and_clear():
    cache = ProductCache()
    cache.set(1, {"id": 1})
    cache.set(2, {"id": 2})
    cache.evict(1)
    cache.evict(99)
    assert 1 not in cache
    assert cache.stats().invalidations == 1
    cache.clear()
    assert cache.stats().size == 0

def test_unreachable_redis_falls_back_to_local():
    cache = ProductCache(redis_url="redis://127.0.0.1:1/0")
    cache.set(1, {"id": 1})
    assert cache.get(1) == {"id": 1}

def test_concurrent_access_keeps_structure_consistent():
    cache = ProductCache(maxsize=32, ttl_seconds=60)

    def worker(offset):
        for i in range(200):
            key = (i + offset) % 64
            cache.set(key, {"id": key})
            cache.get(key)
            if i % 7 == 0:
                cache.evict(key)

    threads = [threading.Thread(target=worker, args=(n * 5,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert cache.stats().size <= 32

def test_store_skipped_when_evicted_since_generation_taken():
    cache = ProductCache()
    generation = cache.generation(1)
    cache.evict(1)
    assert cache.set_if_unchanged(1, generation, {"id": 1, "name": "Old"}) is False
    assert 1 not in cache
    assert cache.set_if_unchanged(1, cache.generation(1), {"id": 1, "name": "New"}) is True
    assert cache.get(1) == {"id": 1, "name": "New"}

def test_clear_invalidates_outstanding_generations():
    cache = ProductCache()
    generation = cache.generation(1)
    cache.clear()
    assert cache.set_if_unchanged(1, generation, {"id": 1}) is False

class SharedRedis:
    """In-memory stand-in for a Redis server shared by several cache instances."""

    def __init__(self):
        self.data = {}
        self.down = False

    def _check(self):
        if self.down:
            raise redis.ConnectionError("connection refused")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value

    def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    def exists(self, key):
        self._check()
        return int(key in self.data)

    def scan_iter(self, match):
        self._check()
        return [k for k in list(self.data) if k.startswith(match.rstrip("*"))]

def cache_on(server):
    cache = ProductCache()
    cache._redis = server
    return cache

def test_eviction_on_one_instance_is_seen_by_another():
    server = SharedRedis()
    first, second = cache_on(server), cache_on(server)
    first.set(1, {"id": 1, "name": "Old"})
    assert second.get(1) == {"id": 1, "name": "Old"}
    first.evict(1)
    assert second.get(1) is None
    assert 1 not in second

def test_local_tier_used_only_when_redis_fails():
    server = SharedRedis()
    cache = cache_on(server)
    server.down = True
    cache.set(1, {"id": 1})
    assert cache.get(1) == {"id": 1}
    server.down = False
    assert cache.get(1) is None
