"""Thread-safe key-value cache with per-key TTL."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class CacheEntry:
    """A cached value and the clock reading at which it was stored."""

    value: Any
    fetched_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl


class TTLCache:
    """
    Key-value cache where each entry carries its own TTL.

    Expired entries are not returned by ``get`` but are kept so that callers
    with a stale-but-available policy can still reach them through
    ``get_stale``. An entry is replaced wholesale on ``set``.

    Instances are created per service and passed in; there is no shared
    module-level cache.
    """

    def __init__(self, default_ttl: float = 30.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when ``set`` is called without one
            clock: Monotonic clock, injectable for tests
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> tuple[Any, bool]:
        """
        Look up a fresh value.

        Returns:
            Tuple of (value, found); value is None when not found or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_fresh(self._clock()):
                self.hits += 1
                return entry.value, True
            self.misses += 1
            return None, False

    def get_stale(self, key: str) -> tuple[Any, bool]:
        """Look up the last stored value regardless of its age."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            return entry.value, True

    def age(self, key: str) -> float | None:
        """Seconds since the entry was stored, or None if absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return self._clock() - entry.fetched_at

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value,
                fetched_at=self._clock(),
                ttl=self.default_ttl if ttl is None else ttl,
            )

    def evict_expired(self) -> int:
        """Remove expired entries; returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
