"""In-memory TTL cache used to avoid repeated scraper calls.

Minimal dependencies, thread-safe, and easy to swap for Redis while keeping
the same interface and behaviors.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Bump to invalidate every cached price when the record shape changes
CACHE_KEY_VERSION = "v1"

Record = dict[str, Any]


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Record
    expires_at: float


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Attributes:
        ttl_seconds: Default time-to-live applied when ``set`` gets none.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(self, ttl_seconds: int = 900, max_entries: int | None = 1024) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def get(self, key: str) -> Record | None:
        """Retrieve a cached value if it exists and is not expired.

        Args:
            key: Cache key.

        Returns:
            A copy of the cached record, or None if not found/expired.
        """

        with self._lock:
            item = self._store.get(key)
            if not item:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": key[:16],
                        "reason": "not_found",
                    },
                )
                return None

            if self._is_expired(item):
                self._evict_single(key)
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": key[:16],
                        "reason": "expired",
                    },
                )
                return None

            self._hits += 1
            self._store.move_to_end(key)  # mark as recently used
            logger.debug(
                "cache.hit",
                extra={
                    "cache_key": key[:16],
                },
            )
            return dict(item.value)

    def set(self, key: str, value: Mapping[str, Any], ttl_seconds: int | None = None) -> None:
        """Store a record with TTL, evicting as needed.

        Args:
            key: Cache key.
            value: Record to store (copied on the way in).
            ttl_seconds: Per-entry TTL; falls back to the cache default.
        """

        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheItem(value=dict(value), expires_at=time.time() + ttl)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": key[:16],
                    "size": len(self._store),
                    "ttl_s": ttl,
                },
            )

    def clear(self) -> int:
        """Remove all cached entries and reset counters.

        Returns:
            Number of entries that were dropped.
        """

        with self._lock:
            dropped = len(self._store)
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            return dropped

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = time.time()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: CacheItem) -> bool:
        return time.time() > item.expires_at


def build_cache_key(params: Mapping[str, Any], *, salt: str | None = None) -> str:
    """Build a stable cache key from query parameters.

    Parameters are serialized as sorted-key JSON so that dict ordering does
    not change the key.

    Args:
        params: Normalized query parameters (JSON-compatible values).
        salt: Optional salt to partition keys (e.g., by price source).

    Returns:
        Hex-encoded SHA-256 digest string.
    """

    hasher = sha256()
    hasher.update(CACHE_KEY_VERSION.encode())
    hasher.update(json.dumps(params, sort_keys=True, separators=(",", ":"), default=str).encode())
    if salt:
        hasher.update(salt.encode())
    return hasher.hexdigest()
