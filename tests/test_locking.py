"""Tests for striped locks."""

import gc
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from rendition_delivery.locking import ALL_SET, StripedLock, StripeIndex, ceil_power_of_two, smear


class TestStripeIndex:
    """Tests for stripe index computation."""

    @pytest.mark.parametrize("stripes,size", [(1, 1), (2, 2), (3, 4), (64, 64), (100, 128), (1 << 30, 1 << 30)])
    def test_size_rounds_up_to_power_of_two(self, stripes, size):
        """Test that the index space is the next power of two."""
        assert StripeIndex(stripes).size == size

    def test_size_capped(self):
        """Test that huge stripe counts use the full index range."""
        index = StripeIndex((1 << 30) + 1)

        assert index.mask == ALL_SET
        assert index.size == ALL_SET

    @pytest.mark.parametrize("stripes", [0, -1])
    def test_invalid_stripes(self, stripes):
        """Test that non-positive stripe counts are rejected."""
        with pytest.raises(ValueError):
            StripeIndex(stripes)

    def test_indexes_in_range(self):
        """Test that every key maps into range(size)."""
        index = StripeIndex(16)
        for key in range(1000):
            assert 0 <= index.index_for(key) < 16

    def test_smear_spreads_consecutive_keys(self):
        """Test that consecutive ints do not all land on few stripes."""
        index = StripeIndex(16)
        used = {index.index_for(key) for key in range(256)}

        assert len(used) == 16

    def test_helpers(self):
        """Test power-of-two rounding and 32-bit smearing."""
        assert ceil_power_of_two(1) == 1
        assert ceil_power_of_two(5) == 8
        assert 0 <= smear(-1) <= 0xFFFFFFFF


class TestStripedLock:
    """Tests for StripedLock."""

    @pytest.mark.parametrize("stripes", [1, 7, 64, 1000])
    def test_equal_keys_same_lock(self, stripes):
        """Test that equal keys always get the same lock instance."""
        locks = StripedLock(stripes)
        rng = random.Random(42)
        held = []

        for _ in range(10_000):
            key = f"/content/dam/asset-{rng.randint(0, 1_000_000)}.jpg"
            first = locks.lock(key)
            second = locks.lock("".join(key))
            held.append(first)

            assert first is second

    def test_tuple_keys(self):
        """Test that equal composite keys share a lock."""
        locks = StripedLock(32)

        assert locks.lock(("asset", 1)) is locks.lock(("asset", 1))

    def test_reentrant(self):
        """Test that the owning thread can re-acquire a lock."""
        locks = StripedLock(4)
        lock = locks.lock("key")

        with lock:
            with locks.lock("key"):
                assert lock.acquire(blocking=False) is True
                lock.release()

    def test_unreferenced_locks_are_dropped(self):
        """Test that locks nobody references are released."""
        locks = StripedLock(8)
        lock = locks.lock("key")
        assert locks.active_stripes() == 1

        del lock
        gc.collect()

        assert locks.active_stripes() == 0

    def test_invalid_stripes(self):
        """Test that non-positive stripe counts are rejected."""
        with pytest.raises(ValueError):
            StripedLock(0)


@pytest.mark.concurrency
class TestStripedLockContention:
    """Concurrency tests for StripedLock."""

    def test_mutual_exclusion_for_equal_keys(self):
        """Test that threads locking equal keys never overlap."""
        locks = StripedLock(16)
        active = 0
        max_active = 0
        counter_lock = threading.Lock()

        def work(_):
            nonlocal active, max_active
            with locks.lock("/content/dam/shared.jpg"):
                with counter_lock:
                    active += 1
                    max_active = max(max_active, active)
                time.sleep(0.001)
                with counter_lock:
                    active -= 1

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(work, range(50)))

        assert max_active == 1

    def test_concurrent_lookup_returns_single_instance(self):
        """Test that racing first lookups create only one lock."""
        locks = StripedLock(16)
        barrier = threading.Barrier(8)

        def lookup(_):
            barrier.wait()
            return locks.lock("key")

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lookup, range(8)))

        assert all(result is results[0] for result in results)
