"""In-memory per-client window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Memory is bounded only by ``sweep()``; the lifecycle calls it periodically.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from easyrest_pricing.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitResult

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 60


@dataclass
class RateLimitEntry:
    """Request counter for one client key."""

    count: int
    window_start: float
    reset_at: float


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Rate limiter whose window starts at each key's first request.

    A key gets ``limit`` requests between its first request and
    ``first + window_seconds``; the first request after that opens a new
    window. Expired entries linger until ``sweep()`` drops them, which
    happens once they are more than ``grace_seconds`` past their reset time.

    Important:
        This store is per-process only. If the API runs with multiple workers,
        each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        grace_seconds: int = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limit store.

        Args:
            limit: Maximum number of allowed requests per window.
            window_seconds: Size of the window in seconds.
            grace_seconds: How long past reset an entry survives sweeps.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or grace_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if grace_seconds < 0:
            raise ValueError("grace_seconds must be >= 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def get_entry(self, key: str) -> RateLimitEntry | None:
        """Return a copy of the entry for ``key`` (for inspection only)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return RateLimitEntry(entry.count, entry.window_start, entry.reset_at)

    def _open_window(self, key: str, now: float) -> RateLimitEntry:
        entry = RateLimitEntry(count=1, window_start=now, reset_at=now + self._window_seconds)
        self._entries[key] = entry
        return entry

    def _build_allowed_result(self, entry: RateLimitEntry) -> RateLimitResult:
        """Build a RateLimitResult for an allowed request."""
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - entry.count),
            reset_at=entry.reset_at,
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, entry: RateLimitEntry, now: float) -> RateLimitResult:
        """Build a RateLimitResult for a blocked request."""
        retry_after = max(0, int(math.ceil(entry.reset_at - now)))
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=entry.reset_at,
            retry_after_seconds=retry_after,
        )

    def check_and_increment(self, key: str) -> RateLimitResult:
        """Count one request for the provided key.

        Checks the key's window and mutates the entry in a single critical
        section, so concurrent arrivals for the same key never lose updates.

        Args:
            key: Unique identifier for rate limiting (e.g., API key).

        Returns:
            RateLimitResult with allowance decision and metadata. A rejection
            carries the reset time of the window that is still active.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.reset_at:
                return self._build_allowed_result(self._open_window(key, now))

            if entry.count < self._limit:
                entry.count += 1
                return self._build_allowed_result(entry)

            return self._build_blocked_result(entry, now)

    def sweep(self, now: float | None = None) -> int:
        """Remove entries more than ``grace_seconds`` past their reset time.

        Args:
            now: UNIX time to compare against; defaults to the store clock.

        Returns:
            Number of removed entries.
        """
        with self._lock:
            current = self._clock() if now is None else now
            stale = [
                key
                for key, entry in self._entries.items()
                if current > entry.reset_at + self._grace_seconds
            ]
            for key in stale:
                del self._entries[key]
            remaining = len(self._entries)

        if stale:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(stale), "tracked_keys": remaining},
            )
        return len(stale)
