# ============================================================================
# tests/unit/test_ai_cache.py
# ============================================================================
"""
Tests for the AI response cache
"""

import pytest

from src.lab_extraction.ai.cache import CacheEntry, CacheStatistics, ResponseCache, cache_key


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(max_size=3, default_ttl=60, clock=clock)


class TestCacheEntry:
    """Test CacheEntry expiry"""

    def test_not_expired_within_ttl(self):
        entry = CacheEntry(key="k", value="v", created_at=100.0, ttl_seconds=60)
        assert not entry.is_expired(160.0)
        assert entry.is_expired(160.5)

    def test_no_ttl_never_expires(self):
        entry = CacheEntry(key="k", value="v", created_at=0.0)
        assert not entry.is_expired(1e9)


class TestCacheStatistics:
    def test_hit_rate(self):
        stats = CacheStatistics()
        assert stats.hit_rate() == 0.0

        stats.hits, stats.misses = 3, 1
        assert stats.hit_rate() == 0.75
        assert stats.to_dict()["hits"] == 3


class TestResponseCache:
    """Test get/set, TTL and LRU behaviour"""

    def test_key_depends_on_model_and_prompt(self):
        assert cache_key("a", "prompt") != cache_key("b", "prompt")
        assert cache_key("a", "prompt") == cache_key("a", "prompt")

    def test_set_and_get(self, cache):
        cache.set("model", "prompt", {"markers": []})

        assert cache.get("model", "prompt") == {"markers": []}
        assert cache.get("other-model", "prompt") is None

    def test_entry_expires(self, cache, clock):
        """Test entries past their TTL are dropped on read"""
        cache.set("model", "prompt", "answer")
        clock.now += 61

        assert cache.get("model", "prompt") is None
        assert len(cache) == 0
        assert cache.get_statistics()["expirations"] == 1

    def test_per_entry_ttl(self, cache, clock):
        cache.set("model", "prompt", "answer", ttl=600)
        clock.now += 120
        assert cache.get("model", "prompt") == "answer"

    def test_lru_eviction(self, cache):
        """Test the least recently used entry is evicted first"""
        cache.set("m", "p1", 1)
        cache.set("m", "p2", 2)
        cache.set("m", "p3", 3)
        cache.get("m", "p1")
        cache.set("m", "p4", 4)

        assert cache.get("m", "p2") is None
        assert cache.get("m", "p1") == 1
        assert len(cache) == 3
        assert cache.get_statistics()["evictions"] == 1

    def test_statistics(self, cache):
        cache.set("m", "p", "v")
        cache.get("m", "p")
        cache.get("m", "missing")

        stats = cache.get_statistics()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["writes"] == 1
        assert stats["entry_count"] == 1
        assert stats["max_size"] == 3

    def test_clear(self, cache):
        cache.set("m", "p", "v")
        cache.clear()
        assert len(cache) == 0
