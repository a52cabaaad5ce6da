#!/usr/bin/env python3
"""
Smoke check for the Redis lease store.

Connects with the configured settings and walks one lease through its
lifecycle: conditional create, busy second create, non-matching release,
matching release.
"""

import sys
import uuid
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from leaselock.infrastructure.persistence.lease_store import RedisLeaseStore
from leaselock.infrastructure.redis_client import create_redis_client, validate_redis_connection


def check_lease_lifecycle() -> bool:
    print("Checking Redis lease store")
    print("==========================")

    client = create_redis_client()
    try:
        validate_redis_connection(client)
    except ConnectionError as e:
        print(f"   ❌ Redis connection failed: {e}")
        return False
    print("   ✅ Redis connection validated")

    store = RedisLeaseStore(client)
    key = f"lock:smoke-check:{uuid.uuid4().hex[:8]}"
    owner, intruder = str(uuid.uuid4()), str(uuid.uuid4())

    steps = [
        ("conditional create", store.create_if_absent(key, owner, 5), True),
        ("second create is busy", store.create_if_absent(key, intruder, 5), False),
        ("release with wrong token is ignored", store.delete_if_owner(key, intruder), False),
        ("lease still owned", store.get(key) == owner, True),
        ("release with owner token", store.delete_if_owner(key, owner), True),
        ("lease gone", store.get(key) is None, True),
    ]

    ok = True
    for name, actual, expected in steps:
        passed = bool(actual) == expected
        ok = ok and passed
        print(f"   {'✅' if passed else '❌'} {name}")

    client.close()
    return ok


if __name__ == "__main__":
    sys.exit(0 if check_lease_lifecycle() else 1)
