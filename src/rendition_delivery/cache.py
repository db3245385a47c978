"""Thread-safe in-memory cache with per-entry time-to-live."""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    expires_at: float


class TtlCache(Generic[V]):
    """Key/value cache whose entries expire a fixed time after insertion.

    Expiry is computed once when an entry is stored and never extended by
    reads. Expired entries are swept when a store finds one due, and
    ``max_entries`` bounds the cache by evicting the least recently used
    entry. The lock only guards dictionary access: ``get_or_compute`` runs
    the compute function unlocked, so two threads missing the same key may
    both compute it and the last one stored wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int | None = None):
        """Initialize an empty cache.

        Args:
            clock: Monotonic time source in seconds (injectable for tests)
            max_entries: Upper bound on stored entries (None = unbounded)
        """
        if max_entries is not None and max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._clock = clock
        self._max_entries = max_entries
        self._entries: OrderedDict[Hashable, _Entry[V]] = OrderedDict()
        # Earliest expiry among stored entries, may lag behind removals
        self._next_expiry = float("inf")
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> V | None:
        """Return the cached value, or None if missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now >= entry.expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.value

    def put(self, key: Hashable, value: V, ttl_seconds: float) -> None:
        """Store a value; non-positive TTLs are not stored."""
        if ttl_seconds <= 0:
            return
        now = self._clock()
        entry = _Entry(value=value, expires_at=now + ttl_seconds)
        with self._lock:
            if now >= self._next_expiry:
                self._sweep(now)
            self._entries[key] = entry
            self._entries.move_to_end(key)
            self._next_expiry = min(self._next_expiry, entry.expires_at)
            while self._max_entries is not None and len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted least recently used cache entry {evicted!r}")

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        self._next_expiry = min((entry.expires_at for entry in self._entries.values()), default=float("inf"))
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")

    def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], V | None],
        ttl_for: Callable[[V], float],
    ) -> V | None:
        """Return the cached value or compute, store and return a fresh one.

        Args:
            key: Cache key
            compute: Produces the value; None results are returned but not cached
            ttl_for: TTL in seconds for a freshly computed value

        Returns:
            Cached or freshly computed value, or None
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = compute()
        if value is not None:
            self.put(key, value, ttl_for(value))
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
