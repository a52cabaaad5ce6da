"""Lease Store Adapters

Purpose: Persistence boundary for lease records

A lease record maps a lock key to the owner token of whichever lock holds it,
with an expiry. The lock protocol needs exactly two atomic primitives from the
store:

- create_if_absent: create key=value with a TTL only if no live record exists
- delete_if_owner: delete key only if its current value equals the given token

Both must be single indivisible operations against the store. A client-side
get-then-delete is not an acceptable delete_if_owner.
"""

import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple, TypeVar

import redis

from leaselock.exceptions import StoreFaultError

T = TypeVar("T")


class LeaseStore(Protocol):
    """
    Persistence boundary for lease records.

    Guarantees:
    - Atomic conditional create with expiry
    - Atomic compare-and-delete
    - At most one live record per key
    """

    def create_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        """Create key=value with expiry iff key has no live record."""
        ...

    def delete_if_owner(self, key: str, expected_value: str) -> bool:
        """Delete key iff its current value equals expected_value."""
        ...

    def get(self, key: str) -> Optional[str]:
        """Current value of a live record, for diagnostics only."""
        ...

    def delete(self, *keys: str) -> int:
        """Unconditional bulk delete. Setup only, not part of the lock protocol."""
        ...

    def ping(self) -> bool:
        ...


# KEYS[1] = lock key, ARGV[1] = owner token
_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""


def _ttl_to_ms(ttl_seconds: float) -> int:
    return max(1, int(round(ttl_seconds * 1000)))


class RedisLeaseStore:
    """
    Redis-backed lease store.

    Conditional create is SET NX PX; compare-and-delete runs server-side as a
    Lua script so the check and the delete cannot interleave with another
    client's SET.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._release_script = client.register_script(_RELEASE_SCRIPT)

    @property
    def client(self) -> redis.Redis:
        return self._client

    def create_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        created = self._call(
            "create_if_absent",
            key,
            lambda: self._client.set(key, value, nx=True, px=_ttl_to_ms(ttl_seconds)),
        )
        return bool(created)

    def delete_if_owner(self, key: str, expected_value: str) -> bool:
        deleted = self._call(
            "delete_if_owner",
            key,
            lambda: self._release_script(keys=[key], args=[expected_value]),
        )
        return bool(deleted)

    def get(self, key: str) -> Optional[str]:
        value = self._call("get", key, lambda: self._client.get(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._call("delete", ",".join(keys), lambda: self._client.delete(*keys)))

    def ping(self) -> bool:
        return bool(self._call("ping", None, self._client.ping))

    @staticmethod
    def _call(operation: str, key: Optional[str], call_func: Callable[[], T]) -> T:
        """Run a single Redis round trip, translating client errors into StoreFaultError."""
        try:
            return call_func()
        except redis.RedisError as e:
            raise StoreFaultError(
                f"Lease store {operation} failed for {key}: {e}",
                details={"operation": operation, "key": key, "error_type": type(e).__name__},
            ) from e


class InMemoryLeaseStore:
    """
    In-memory reference implementation.

    Used for:
    - Tests
    - Local experiments without a Redis server
    - Demonstrating the lease state machine

    Records live in a dict guarded by one mutex; expiry is evaluated lazily
    against a monotonic clock on every access. NOT for production.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: Dict[str, Tuple[str, float]] = {}
        self._mutex = threading.Lock()
        self._clock = clock

    def create_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        with self._mutex:
            now = self._clock()
            if self._live_value(key, now) is not None:
                return False
            self._data[key] = (value, now + _ttl_to_ms(ttl_seconds) / 1000.0)
            return True

    def delete_if_owner(self, key: str, expected_value: str) -> bool:
        with self._mutex:
            if self._live_value(key, self._clock()) != expected_value:
                return False
            del self._data[key]
            return True

    def get(self, key: str) -> Optional[str]:
        with self._mutex:
            return self._live_value(key, self._clock())

    def delete(self, *keys: str) -> int:
        with self._mutex:
            now = self._clock()
            removed = 0
            for key in keys:
                if self._live_value(key, now) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    def ping(self) -> bool:
        return True

    def _live_value(self, key: str, now: float) -> Optional[str]:
        # Caller holds the mutex.
        record = self._data.get(key)
        if record is None:
            return None
        value, expires_at = record
        if now >= expires_at:
            del self._data[key]
            return None
        return value
