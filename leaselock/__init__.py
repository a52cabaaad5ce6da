"""
Lease-based distributed lock on a shared key-value store.

Public API surface for the leaselock package.
"""

from .core.lock import DistributedLock, RetryPolicy
from .exceptions import LeaseLockException, LockAcquisitionError, StoreFaultError
from .infrastructure.persistence.lease_store import InMemoryLeaseStore, LeaseStore, RedisLeaseStore

__all__ = [
    "DistributedLock",
    "RetryPolicy",
    "LeaseLockException",
    "LockAcquisitionError",
    "StoreFaultError",
    "InMemoryLeaseStore",
    "LeaseStore",
    "RedisLeaseStore",
]

__version__ = "0.1.0"
