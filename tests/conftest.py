"""Shared pytest fixtures and configuration for leaselock tests."""

import pytest

from leaselock.config.settings import reset_settings
from leaselock.core.lock import RetryPolicy
from leaselock.infrastructure.persistence.lease_store import InMemoryLeaseStore
from tests.test_doubles import CountingLeaseStore, ManualClock


@pytest.fixture(autouse=True)
def fresh_settings():
    """Every test sees settings rebuilt from its own environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def memory_store():
    """In-memory lease store on the real monotonic clock."""
    return InMemoryLeaseStore()


@pytest.fixture
def counting_store():
    """In-memory lease store that counts create/release calls per key."""
    return CountingLeaseStore()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def clocked_store(manual_clock):
    """In-memory lease store driven by a manual clock."""
    return InMemoryLeaseStore(clock=manual_clock)


@pytest.fixture
def fast_policy():
    """Retry policy short enough for unit tests but long enough to outlast a short hold."""
    return RetryPolicy(max_attempts=200, delay_seconds=0.01)
