# ============================================================================
# src/lab_extraction/ai/cache.py
# ============================================================================
"""
AI Response Cache

In-memory cache of completed AI extraction results, keyed by a hash of
model + prompt, so re-importing the same report does not pay for a
second AI pass.

- TTL expiration (default 24 h)
- LRU eviction beyond max_size entries
- Thread-safe
"""

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..config import ai_settings


@dataclass
class CacheEntry:
    """Cached response with its creation time (clock seconds)."""
    key: str
    value: Any
    created_at: float
    ttl_seconds: Optional[float] = None
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return now - self.created_at > self.ttl_seconds


class CacheStatistics:
    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self.writes = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "writes": self.writes,
            "hit_rate": self.hit_rate(),
        }


def cache_key(model: str, prompt: str) -> str:
    return hashlib.sha256(f"{model}\n{prompt}".encode("utf-8")).hexdigest()


class ResponseCache:
    """
    LRU + TTL cache for AI responses.

    Example:
        cache = ResponseCache(max_size=200, default_ttl=86400)
        cache.set("claude-sonnet", prompt, text)
        cache.get("claude-sonnet", prompt)
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_size = max_size if max_size is not None else ai_settings.AI_CACHE_MAX_SIZE
        self.default_ttl = default_ttl if default_ttl is not None else ai_settings.AI_CACHE_TTL
        self._clock = clock
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStatistics()
        self.logger = logging.getLogger(__name__)

    def get(self, model: str, prompt: str) -> Optional[Any]:
        with self._lock:
            key = cache_key(model, prompt)
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired(self._clock()):
                self.logger.debug(f"Cache entry expired: {key[:12]}")
                del self._cache[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                return None

            entry.access_count += 1
            self._cache.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, model: str, prompt: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            key = cache_key(model, prompt)
            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                created_at=self._clock(),
                ttl_seconds=ttl if ttl is not None else self.default_ttl,
            )
            self._cache.move_to_end(key)
            self._stats.writes += 1

            while len(self._cache) > self.max_size:
                evicted, _ = self._cache.popitem(last=False)
                self._stats.evictions += 1
                self.logger.debug(f"Evicted LRU entry: {evicted[:12]}")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats["entry_count"] = len(self._cache)
            stats["max_size"] = self.max_size
            stats["default_ttl"] = self.default_ttl
            return stats
