"""Bounded result caches.

Entries are evicted in insertion order (oldest first) once the cache is
full. Re-putting an existing key replaces its value but keeps its position.
An optional time-to-live expires entries on read.
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Counters for a result cache."""
    size: int
    max_size: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class ResultCache:
    """Bounded first-in-first-out cache with optional expiry."""

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, stored_at = entry
            if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value, evicting the oldest entry when the cache is full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._evictions += 1
                logger.debug("Cache full (%d entries); evicted oldest entry", self.max_entries)
            self._entries[key] = (value, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_entries,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def keys(self) -> list[Hashable]:
        """Keys in insertion order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries


def fingerprint(*parts: Optional[str]) -> str:
    """Stable hash of the given text parts."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update((part if part is not None else "\x00none").encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()
