"""Lease store adapters: Redis for real deployments, in-memory for tests and local runs."""

from .lease_store import InMemoryLeaseStore, LeaseStore, RedisLeaseStore

__all__ = ["InMemoryLeaseStore", "LeaseStore", "RedisLeaseStore"]
