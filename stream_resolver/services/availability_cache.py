# stream_resolver/services/availability_cache.py

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from ..config import logger

AVAILABILITY_CACHE_MAX_ENTRIES = 2000
AVAILABILITY_CACHE_TTL_SECONDS = 60 * 60  # 1 hour
AVAILABILITY_CACHE_FAILURE_TTL_SECONDS = 5 * 60  # "not cached" answers go stale fast


@dataclass
class _CacheEntry:
    value: bool
    expires_at: float


class AvailabilityCache:
    """TTL-based LRU cache of debrid instant-availability answers, keyed by info hash.

    Safe to share between concurrent resolutions: every access goes through a
    lock.
    """

    MISS = object()

    def __init__(
        self,
        *,
        max_entries: int = AVAILABILITY_CACHE_MAX_ENTRIES,
        ttl: float = AVAILABILITY_CACHE_TTL_SECONDS,
        failure_ttl: float = AVAILABILITY_CACHE_FAILURE_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.max_entries = max(1, max_entries)
        self.ttl = ttl
        self.failure_ttl = failure_ttl
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, info_hash: str) -> bool | object:
        """Returns the stored answer, or ``MISS`` when unknown or expired."""
        key = info_hash.lower()
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None or entry.expires_at <= self._clock():
                return AvailabilityCache.MISS
            # Re-inserted entries become the most recently used.
            self._entries[key] = entry
            return entry.value

    def set(self, info_hash: str, available: bool, *, ttl: float | None = None) -> None:
        """Stores an answer; "not cached" answers default to the shorter TTL."""
        if ttl is None:
            ttl = self.ttl if available else self.failure_ttl
        key = info_hash.lower()
        with self._lock:
            self._entries[key] = _CacheEntry(bool(available), self._clock() + ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("[CACHE] Evicted availability entry for %s", evicted)


class NullAvailabilityCache(AvailabilityCache):
    """Never remembers anything; every lookup is a miss."""

    def get(self, info_hash: str) -> bool | object:
        return AvailabilityCache.MISS

    def set(self, info_hash: str, available: bool, *, ttl: float | None = None) -> None:
        return None
