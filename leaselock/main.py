"""main.py

Purpose: Command-line entry point for the contention demo

Loads settings, connects to the lease store, checks connectivity, clears
leftover leases, runs the contention harness and prints the results.

Exit codes:
    0  every group's counter matches workers x increment
    1  at least one group is inconsistent
    2  the lease store is unreachable or misconfigured
"""

import argparse
import sys
from typing import List, Optional

import redis

from leaselock.config.settings import LeaseLockSettings, get_settings
from leaselock.exceptions import ConfigurationException, StoreFaultError
from leaselock.harness.contention import ContentionHarness
from leaselock.infrastructure.logging import configure_logging, get_logger
from leaselock.infrastructure.persistence.lease_store import (
    InMemoryLeaseStore,
    LeaseStore,
    RedisLeaseStore,
)
from leaselock.infrastructure.redis_client import RedisClientFactory

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_INCONSISTENT = 1
EXIT_STORE_UNAVAILABLE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Distributed lock demo: parallel workers contending for lease-locked counters"
    )
    parser.add_argument(
        "--store",
        choices=["redis", "memory"],
        default="redis",
        help="Lease store backend (memory runs without a Redis server)"
    )
    parser.add_argument("--redis-url", help="Redis URL, overrides REDIS_URL / REDIS_HOST")
    parser.add_argument("--lease-seconds", type=float, help="Lease duration per lock")
    parser.add_argument("--retry-attempts", type=int, help="Acquire attempts per worker")
    parser.add_argument("--retry-delay", type=float, help="Seconds between busy attempts")
    parser.add_argument("--work-seconds", type=float, help="Simulated critical-section duration")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level"
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser


def apply_overrides(settings: LeaseLockSettings, args: argparse.Namespace) -> LeaseLockSettings:
    """Copy settings and apply command-line overrides on top."""
    lock_updates = {}
    if args.lease_seconds is not None:
        lock_updates["lease_seconds"] = args.lease_seconds
    if args.retry_attempts is not None:
        lock_updates["retry_attempts"] = args.retry_attempts
    if args.retry_delay is not None:
        lock_updates["retry_delay_seconds"] = args.retry_delay

    harness_updates = {}
    if args.work_seconds is not None:
        harness_updates["work_seconds"] = args.work_seconds

    database_updates = {}
    if args.redis_url:
        database_updates["redis_url"] = args.redis_url

    logging_updates = {}
    if args.log_level:
        logging_updates["level"] = args.log_level
    if args.json_logs:
        logging_updates["structured_logging"] = True

    try:
        return settings.model_copy(update={
            "lock": type(settings.lock).model_validate({**settings.lock.model_dump(), **lock_updates}),
            "harness": type(settings.harness).model_validate({**settings.harness.model_dump(), **harness_updates}),
            "database": settings.database.model_copy(update=database_updates),
            "logging": type(settings.logging).model_validate({**settings.logging.model_dump(), **logging_updates}),
        })
    except ValueError as e:
        raise ConfigurationException(f"Invalid command-line override: {e}") from e


def create_store(kind: str, settings: LeaseLockSettings) -> LeaseStore:
    if kind == "memory":
        return InMemoryLeaseStore()
    client = RedisClientFactory.create_client(
        redis_url=settings.database.redis_url,
        settings=settings.database,
    )
    return RedisLeaseStore(client)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(get_settings(), args)
    except ConfigurationException as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_STORE_UNAVAILABLE

    configure_logging(
        level=settings.logging.level.value,
        structured=settings.logging.structured_logging,
    )

    try:
        store = create_store(args.store, settings)
    except (ValueError, redis.RedisError) as e:
        logger.error("could not create lease store", store=args.store, error=str(e))
        return EXIT_STORE_UNAVAILABLE

    try:
        store.ping()
    except StoreFaultError as e:
        logger.error("could not connect to lease store", store=args.store, error=str(e))
        return EXIT_STORE_UNAVAILABLE

    harness = ContentionHarness.from_settings(store, settings)

    print("=" * 64)
    print(f"  Distributed Lock Demo: {len(harness.groups)} resources, {len(harness.assignments())} workers")
    for group in harness.groups:
        print(f"  {group.name}: {group.workers} workers competing, +{group.increment} each")
    print("=" * 64)

    try:
        harness.reset()
        report = harness.run()
    except StoreFaultError as e:
        logger.error("lease store failed during setup", error=str(e))
        return EXIT_STORE_UNAVAILABLE

    print(report.render())
    return EXIT_OK if report.consistent else EXIT_INCONSISTENT


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
