"""Striped locks keyed by arbitrary hashable objects.

A ``StripedLock`` maps any number of keys onto a bounded set of reentrant
locks. Equal keys always get the same lock; unequal keys may share one.
Locks are created on first use and dropped again once no caller references
them, so an idle stripe costs nothing.

Example:
    locks = StripedLock(64)
    with locks.lock(asset_path):
        ...  # at most one thread per asset path (and its stripe) gets here
"""

import logging
import threading
import weakref
from typing import Hashable

logger = logging.getLogger(__name__)

MAX_POWER_OF_TWO = 1 << 30
ALL_SET = 0x7FFFFFFF


def ceil_power_of_two(value: int) -> int:
    """Smallest power of two >= value (value must be positive)."""
    return 1 << (value - 1).bit_length()


def smear(hash_code: int) -> int:
    """Spread the entropy of a 32-bit hash into its low bits.

    Keys with poor hash functions (e.g. small consecutive ints) would
    otherwise pile up on a few stripes.
    """
    hash_code &= 0xFFFFFFFF
    hash_code ^= (hash_code >> 20) ^ (hash_code >> 12)
    return hash_code ^ (hash_code >> 7) ^ (hash_code >> 4)


class StripeIndex:
    """Maps keys to stripe indexes in ``range(size)``."""

    def __init__(self, stripes: int):
        if stripes <= 0:
            raise ValueError(f"Stripes must be positive, got {stripes}")
        self.mask = ALL_SET if stripes > MAX_POWER_OF_TWO else ceil_power_of_two(stripes) - 1

    @property
    def size(self) -> int:
        """Number of distinct stripe indexes."""
        return self.mask + 1 if self.mask != ALL_SET else ALL_SET

    def index_for(self, key: Hashable) -> int:
        return smear(hash(key)) & self.mask


class StripeLock:
    """Reentrant lock for one stripe.

    Wraps ``threading.RLock`` so instances can be held weakly.
    """

    __slots__ = ("index", "_lock", "__weakref__")

    def __init__(self, index: int):
        self.index = index
        self._lock = threading.RLock()

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return self._lock.acquire(blocking, timeout)

    def release(self) -> None:
        self._lock.release()

    def __enter__(self) -> "StripeLock":
        self._lock.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._lock.release()

    def __repr__(self) -> str:
        return f"StripeLock(index={self.index})"


class StripedLock:
    """Lazily created, weakly held reentrant locks, one per stripe.

    Two calls with equal keys return the same ``StripeLock`` as long as
    somebody still references it. Once every reference is gone the lock
    may be collected and a fresh one created on the next call, which is
    harmless because nobody can be holding the old one.

    Callers holding several keys at once must acquire them in a consistent
    order; no deadlock detection is done here.
    """

    def __init__(self, stripes: int):
        """Initialize the lock table.

        Args:
            stripes: Minimum number of stripes (rounded up to a power of two)

        Raises:
            ValueError: If stripes is not positive
        """
        self._index = StripeIndex(stripes)
        self._locks: "weakref.WeakValueDictionary[int, StripeLock]" = weakref.WeakValueDictionary()
        self._creation_lock = threading.Lock()

    @property
    def size(self) -> int:
        return self._index.size

    def index_for(self, key: Hashable) -> int:
        return self._index.index_for(key)

    def lock(self, key: Hashable) -> StripeLock:
        """Return the lock guarding ``key``.

        The caller must keep the returned object referenced for as long as
        it relies on mutual exclusion.
        """
        index = self._index.index_for(key)
        existing = self._locks.get(index)
        if existing is not None:
            return existing

        with self._creation_lock:
            existing = self._locks.get(index)
            if existing is None:
                existing = StripeLock(index)
                self._locks[index] = existing
                logger.debug(f"Created stripe lock {index} for key {key!r}")
            return existing

    def active_stripes(self) -> int:
        """Number of stripe locks currently alive."""
        return len(self._locks)
