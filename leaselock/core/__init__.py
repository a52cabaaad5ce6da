"""Core lock protocol."""

from .lock import DEFAULT_KEY_PREFIX, DistributedLock, RetryPolicy, lock_key

__all__ = ["DEFAULT_KEY_PREFIX", "DistributedLock", "RetryPolicy", "lock_key"]
