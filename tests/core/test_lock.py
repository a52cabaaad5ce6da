"""
Tests for the lease-based DistributedLock.

Validates that:
- Acquisition is a single conditional create; busy is False, not an error
- Release only deletes a lease the lock still owns, and is idempotent
- Leases expire on their own
- acquire_with_retry is bounded and never retries store faults
"""

import io
import json
import logging
import threading
import time

import pytest

from leaselock.config.settings import LockSettings
from leaselock.core.lock import DistributedLock, RetryPolicy, lock_key
from leaselock.exceptions import LockAcquisitionError, StoreFaultError
from leaselock.infrastructure.logging import WorkerContext, configure_logging
from tests.test_doubles import FaultyLeaseStore, hold_lease


class TestLockIdentity:
    """Key derivation and ownership tokens."""

    def test_key_is_namespaced(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")
        assert lock.key == "lock:inventory"
        assert lock_key("orders") == "lock:orders"

    def test_custom_prefix(self, memory_store):
        lock = DistributedLock(memory_store, "inventory", key_prefix="shop:lock:")
        assert lock.key == "shop:lock:inventory"

    def test_tokens_are_unique_per_instance(self, memory_store):
        tokens = {DistributedLock(memory_store, "inventory").token for _ in range(1000)}
        assert len(tokens) == 1000

    def test_same_resource_same_key_different_token(self, memory_store):
        first = DistributedLock(memory_store, "inventory")
        second = DistributedLock(memory_store, "inventory")
        assert first.key == second.key
        assert first.token != second.token

    @pytest.mark.parametrize("lease", [0, -1])
    def test_non_positive_lease_rejected(self, memory_store, lease):
        with pytest.raises(ValueError):
            DistributedLock(memory_store, "inventory", lease_seconds=lease)

    def test_from_settings(self, memory_store):
        settings = LockSettings(
            key_prefix="app:",
            lease_seconds=3,
            retry_attempts=4,
            retry_delay_seconds=0.25,
        )
        lock = DistributedLock.from_settings(memory_store, "orders", settings)

        assert lock.key == "app:orders"
        assert lock.lease_seconds == 3
        assert lock.retry_policy == RetryPolicy(max_attempts=4, delay_seconds=0.25)


class TestAcquire:
    """Single-shot acquisition."""

    def test_acquire_free_resource(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")

        assert lock.acquire() is True
        assert lock.owner() == lock.token
        assert lock.is_locked()

    def test_second_lock_is_busy(self, memory_store):
        first = DistributedLock(memory_store, "inventory")
        second = DistributedLock(memory_store, "inventory")

        assert first.acquire() is True
        assert second.acquire() is False
        assert memory_store.get(first.key) == first.token

    def test_not_reentrant(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")
        assert lock.acquire() is True
        assert lock.acquire() is False

    def test_distinct_resources_are_independent(self, memory_store):
        inventory = DistributedLock(memory_store, "inventory")
        orders = DistributedLock(memory_store, "orders")

        assert inventory.acquire() is True
        assert orders.acquire() is True

    def test_free_after_release(self, memory_store):
        first = DistributedLock(memory_store, "inventory")
        second = DistributedLock(memory_store, "inventory")

        assert first.acquire()
        assert first.release() is True
        assert second.acquire() is True

    def test_store_fault_propagates(self):
        store = FaultyLeaseStore(fail_create_keys={"lock:inventory"})
        lock = DistributedLock(store, "inventory")

        with pytest.raises(StoreFaultError):
            lock.acquire()


class TestRelease:
    """Ownership-scoped, idempotent release."""

    def test_release_with_foreign_token_keeps_lease(self, memory_store):
        first = DistributedLock(memory_store, "inventory")
        second = DistributedLock(memory_store, "inventory")
        assert first.acquire()

        assert second.release() is False

        assert memory_store.get(first.key) == first.token
        assert first.is_locked()

    def test_release_twice_is_noop(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")
        assert lock.acquire()

        assert lock.release() is True
        assert lock.release() is False
        assert not lock.is_locked()

    def test_release_never_acquired(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")
        assert lock.release() is False
        assert memory_store.get(lock.key) is None

    def test_stale_holder_cannot_release_new_lease(self, clocked_store, manual_clock):
        """A holder whose lease expired must not delete its successor's lease."""
        stale = DistributedLock(clocked_store, "inventory", lease_seconds=1)
        successor = DistributedLock(clocked_store, "inventory", lease_seconds=10)

        assert stale.acquire()
        manual_clock.advance(1.5)
        assert successor.acquire()

        assert stale.release() is False
        assert clocked_store.get(successor.key) == successor.token

    def test_release_store_fault_propagates(self):
        store = FaultyLeaseStore(fail_release_keys={"lock:inventory"})
        lock = DistributedLock(store, "inventory")
        assert lock.acquire()

        with pytest.raises(StoreFaultError):
            lock.release()


class TestExpiry:
    """Passive lease expiry."""

    def test_lease_expires_without_release(self, clocked_store, manual_clock):
        holder = DistributedLock(clocked_store, "inventory", lease_seconds=10)
        other = DistributedLock(clocked_store, "inventory")
        assert holder.acquire()

        manual_clock.advance(9.9)
        assert other.acquire() is False

        manual_clock.advance(0.2)
        assert other.acquire() is True
        assert other.owner() == other.token

    def test_lease_expires_in_real_time(self, memory_store):
        holder = DistributedLock(memory_store, "inventory", lease_seconds=0.05)
        other = DistributedLock(memory_store, "inventory")
        assert holder.acquire()

        time.sleep(0.1)

        assert other.acquire() is True


class TestAcquireWithRetry:
    """Bounded retry on busy results."""

    def test_free_lock_acquired_first_attempt(self, counting_store):
        lock = DistributedLock(counting_store, "inventory")

        assert lock.acquire_with_retry(5, 0.01) is True
        assert counting_store.create_attempts[lock.key] == 1

    def test_acquires_once_holder_releases(self, memory_store):
        holder = DistributedLock(memory_store, "inventory")
        waiter = DistributedLock(memory_store, "inventory")
        assert holder.acquire()

        timer = threading.Timer(0.1, holder.release)
        timer.start()
        try:
            assert waiter.acquire_with_retry(100, 0.01) is True
        finally:
            timer.join()
        assert waiter.owner() == waiter.token

    def test_exhausted_returns_false_within_bounds(self, counting_store):
        hold_lease(counting_store, "lock:inventory")
        assert counting_store.create_attempts["lock:inventory"] == 0
        lock = DistributedLock(counting_store, "inventory")

        started = time.monotonic()
        acquired = lock.acquire_with_retry(5, 0.02)
        elapsed = time.monotonic() - started

        assert acquired is False
        assert counting_store.create_attempts["lock:inventory"] == 5
        assert elapsed >= 5 * 0.02 * 0.9
        assert elapsed < 2.0

    def test_store_fault_not_retried(self):
        store = FaultyLeaseStore(fail_create_keys={"lock:inventory"})
        lock = DistributedLock(store, "inventory")

        with pytest.raises(StoreFaultError):
            lock.acquire_with_retry(10, 0.01)
        assert store.create_attempts["lock:inventory"] == 1

    def test_defaults_come_from_retry_policy(self, counting_store):
        hold_lease(counting_store, "lock:inventory")
        lock = DistributedLock(
            counting_store, "inventory", retry_policy=RetryPolicy(max_attempts=3, delay_seconds=0)
        )

        assert lock.acquire_with_retry() is False
        assert counting_store.create_attempts["lock:inventory"] == 3

    def test_partial_override_keeps_policy_delay(self, counting_store):
        hold_lease(counting_store, "lock:inventory")
        lock = DistributedLock(
            counting_store, "inventory", retry_policy=RetryPolicy(max_attempts=50, delay_seconds=0)
        )

        assert lock.acquire_with_retry(max_attempts=2) is False
        assert counting_store.create_attempts["lock:inventory"] == 2

    def test_zero_attempts_rejected(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")
        with pytest.raises(ValueError):
            lock.acquire_with_retry(0, 0.01)


class TestHeldContextManager:
    """held() acquires, yields, and always releases."""

    def test_releases_after_body(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")

        with lock.held(3, 0.01) as held:
            assert held is lock
            assert memory_store.get(lock.key) == lock.token

        assert memory_store.get(lock.key) is None

    def test_releases_when_body_raises(self, memory_store):
        lock = DistributedLock(memory_store, "inventory")

        with pytest.raises(RuntimeError):
            with lock.held(3, 0.01):
                raise RuntimeError("boom")

        assert not lock.is_locked()

    def test_raises_when_not_acquired(self, memory_store):
        hold_lease(memory_store, "lock:inventory")
        lock = DistributedLock(memory_store, "inventory")

        with pytest.raises(LockAcquisitionError) as exc_info:
            with lock.held(2, 0.01):
                pytest.fail("critical section must not run")

        assert exc_info.value.details["key"] == "lock:inventory"

    def test_release_fault_does_not_mask_body(self):
        store = FaultyLeaseStore(fail_release_keys={"lock:inventory"})
        lock = DistributedLock(store, "inventory")
        writes = []

        with lock.held(1, 0):
            writes.append("done")

        assert writes == ["done"]
        assert store.release_attempts["lock:inventory"] == 1


class TestMutualExclusion:
    """Threads contending directly on one lock never overlap."""

    def test_threads_serialize_read_modify_write(self, memory_store, fast_policy):
        counter = {"value": 0}
        intervals = []
        start = threading.Event()

        def worker():
            start.wait()
            lock = DistributedLock(memory_store, "inventory", retry_policy=fast_policy)
            with lock.held():
                entered = time.monotonic()
                current = counter["value"]
                time.sleep(0.02)
                counter["value"] = current + 1
                intervals.append((entered, time.monotonic()))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        start.set()
        for t in threads:
            t.join()

        assert counter["value"] == 5
        intervals.sort()
        for (_, prev_exit), (next_enter, _) in zip(intervals, intervals[1:]):
            assert prev_exit <= next_enter


class TestRetryPolicy:

    def test_max_wait(self):
        assert RetryPolicy(15, 0.5).max_wait_seconds == pytest.approx(7.5)

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 15
        assert policy.delay_seconds == 0.5

    @pytest.mark.parametrize("attempts,delay", [(0, 0.1), (3, -0.1)])
    def test_invalid(self, attempts, delay):
        with pytest.raises(ValueError):
            RetryPolicy(attempts, delay)


class TestLockLogging:
    """Lock events go through the structlog chain with the worker context."""

    @pytest.fixture
    def json_log_stream(self):
        configure_logging(level="INFO", structured=True)
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        root = logging.getLogger()
        root.addHandler(handler)
        yield stream
        root.removeHandler(handler)
        configure_logging()

    def test_busy_attempt_carries_worker_context(self, memory_store, json_log_stream):
        hold_lease(memory_store, "lock:inventory")
        lock = DistributedLock(memory_store, "inventory")

        with WorkerContext(worker_id=7, group="inventory", resource="inventory"):
            assert lock.acquire_with_retry(1, 0) is False

        lines = [json.loads(line) for line in json_log_stream.getvalue().splitlines()]
        busy = [line for line in lines if line["event"] == "lock busy, retrying"]
        assert len(busy) == 1
        assert busy[0]["worker_id"] == 7
        assert busy[0]["resource"] == "inventory"
        assert busy[0]["key"] == "lock:inventory"
        assert (busy[0]["attempt"], busy[0]["max_attempts"]) == (1, 1)
        assert any(line["event"] == "lock not acquired, attempts exhausted" for line in lines)
