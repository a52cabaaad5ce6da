"""Distributed Lock

Purpose: Lease-based mutual exclusion over a shared key-value store

A DistributedLock is created per acquisition sequence. Its owner token is a
fresh uuid4 and is the only proof of ownership: release deletes the lease
record only when the stored value still equals that token, so a holder whose
lease already expired can never delete the lease of the next holder.

Key Features:
- Single-shot acquire (busy is a plain False, never an error)
- Bounded acquire-with-retry: fixed attempts, fixed delay, store faults not retried
- Ownership-scoped, idempotent release
- Context manager support for clean usage

The lease is fixed-duration. It is not renewed while held.
"""

import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from leaselock.config.settings import LockSettings
from leaselock.exceptions import LockAcquisitionError, StoreFaultError
from leaselock.infrastructure.logging import get_logger
from leaselock.infrastructure.persistence.lease_store import LeaseStore

DEFAULT_KEY_PREFIX = "lock:"


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed attempt count and fixed delay between busy attempts."""

    max_attempts: int = 15
    delay_seconds: float = 0.5

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")

    @property
    def max_wait_seconds(self) -> float:
        """Time spent sleeping when every attempt finds the lock busy."""
        return self.max_attempts * self.delay_seconds

    @classmethod
    def from_settings(cls, settings: LockSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_attempts,
            delay_seconds=settings.retry_delay_seconds,
        )


def lock_key(resource: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Store key for a logical resource name."""
    return f"{prefix}{resource}"


class DistributedLock:
    """
    Lease-based lock on a single named resource.

    Uses the store's conditional create for acquisition and its atomic
    compare-and-delete for release. Not reentrant: a second acquire() on a
    lock that already holds its lease reports busy.
    """

    def __init__(
        self,
        store: LeaseStore,
        resource: str,
        lease_seconds: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        """
        Initialize the lock.

        Args:
            store: Lease store providing the atomic primitives
            resource: Logical resource name, e.g. "inventory"
            lease_seconds: Lease expiry; bounds hold time if the holder dies
            retry_policy: Defaults for acquire_with_retry()
            key_prefix: Namespace prepended to the resource name
        """
        if lease_seconds <= 0:
            raise ValueError("lease_seconds must be positive")
        self.store = store
        self.resource = resource
        self.key = lock_key(resource, key_prefix)
        self.token = str(uuid.uuid4())
        self.lease_seconds = lease_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.logger = get_logger(__name__)

    @classmethod
    def from_settings(cls, store: LeaseStore, resource: str, settings: LockSettings) -> "DistributedLock":
        return cls(
            store,
            resource,
            lease_seconds=settings.lease_seconds,
            retry_policy=RetryPolicy.from_settings(settings),
            key_prefix=settings.key_prefix,
        )

    @property
    def short_token(self) -> str:
        return self.token[:8]

    def acquire(self) -> bool:
        """
        Try once to create the lease record.

        Returns:
            True if this lock now holds the lease, False if another lease is live

        Raises:
            StoreFaultError: If the store could not be reached
        """
        acquired = self.store.create_if_absent(self.key, self.token, self.lease_seconds)
        if acquired:
            self.logger.debug("lock acquired", key=self.key, token=self.short_token)
        return acquired

    def acquire_with_retry(
        self,
        max_attempts: Optional[int] = None,
        delay_seconds: Optional[float] = None,
    ) -> bool:
        """
        Acquire, retrying busy results with a fixed delay.

        Args:
            max_attempts: Number of acquire() calls at most (default: retry policy)
            delay_seconds: Sleep between busy attempts (default: retry policy)

        Returns:
            True as soon as acquired, False once all attempts are exhausted

        Raises:
            StoreFaultError: On the first store fault, without further attempts
        """
        policy = self.retry_policy
        if max_attempts is not None or delay_seconds is not None:
            policy = RetryPolicy(
                max_attempts=policy.max_attempts if max_attempts is None else max_attempts,
                delay_seconds=policy.delay_seconds if delay_seconds is None else delay_seconds,
            )

        for attempt in range(1, policy.max_attempts + 1):
            if self.acquire():
                return True
            self.logger.info(
                "lock busy, retrying",
                key=self.key,
                token=self.short_token,
                attempt=attempt,
                max_attempts=policy.max_attempts,
            )
            time.sleep(policy.delay_seconds)

        self.logger.warning(
            "lock not acquired, attempts exhausted",
            key=self.key,
            token=self.short_token,
            attempts=policy.max_attempts,
        )
        return False

    def release(self) -> bool:
        """
        Release the lease if this lock still owns it.

        Releasing a lease that expired, was taken over, or was never acquired
        is a no-op, not an error.

        Returns:
            True if a lease record was deleted, False otherwise

        Raises:
            StoreFaultError: If the store could not be reached
        """
        deleted = self.store.delete_if_owner(self.key, self.token)
        if deleted:
            self.logger.debug("lock released", key=self.key, token=self.short_token)
        else:
            self.logger.debug("no lease owned, nothing released", key=self.key, token=self.short_token)
        return deleted

    @contextmanager
    def held(
        self,
        max_attempts: Optional[int] = None,
        delay_seconds: Optional[float] = None,
    ) -> Iterator["DistributedLock"]:
        """
        Context manager for acquiring and auto-releasing the lock.

        Usage:
            with DistributedLock(store, "inventory").held():
                # Critical section
                ...

        Raises:
            LockAcquisitionError: If the lock cannot be acquired within the retry budget
            StoreFaultError: If the store fails during acquisition
        """
        if not self.acquire_with_retry(max_attempts, delay_seconds):
            raise LockAcquisitionError(
                f"Failed to acquire lock {self.key}",
                details={"key": self.key, "token": self.token},
            )

        try:
            yield self
        finally:
            try:
                self.release()
            except StoreFaultError as e:
                # The lease expires on its own; completed writes are kept.
                self.logger.error("lock release failed", key=self.key, error=str(e))

    def is_locked(self) -> bool:
        """Check whether any live lease exists for this resource."""
        return self.store.get(self.key) is not None

    def owner(self) -> Optional[str]:
        """Token of the current lease holder, for diagnostics only."""
        return self.store.get(self.key)

    def __repr__(self) -> str:
        return f"DistributedLock(key={self.key!r}, token={self.short_token!r}, lease_seconds={self.lease_seconds})"
