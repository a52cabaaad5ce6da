"""Contention Harness

Purpose: Manufacture maximal contention on independently locked resources and
verify that the lease lock serializes read-modify-write cycles.

Every worker blocks on one start gate before touching the store. The harness
releases the gate once, after all workers are submitted, so they race for
their locks simultaneously. Inside the critical section each worker reads its
group's counter, sleeps to widen the race window, and writes back the read
value plus its increment. Without the lock, concurrent workers would read the
same value and lose updates.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from leaselock.config.settings import HarnessSettings, LeaseLockSettings
from leaselock.core.lock import DEFAULT_KEY_PREFIX, DistributedLock, RetryPolicy, lock_key
from leaselock.exceptions import StoreFaultError
from leaselock.infrastructure.logging import WorkerContext, get_logger
from leaselock.infrastructure.persistence.lease_store import LeaseStore

from .models import SharedCounter, StartGate, WorkerGroup, WorkerOutcome, WorkerResult
from .report import HarnessReport

logger = get_logger(__name__)


def default_groups(settings: Optional[HarnessSettings] = None) -> List[WorkerGroup]:
    """The inventory/orders scenario: 3 workers adding 10, 2 workers adding 1."""
    settings = settings or HarnessSettings()
    return [
        WorkerGroup(
            name="inventory",
            resource="inventory",
            workers=settings.inventory_workers,
            increment=settings.inventory_increment,
        ),
        WorkerGroup(
            name="orders",
            resource="orders",
            workers=settings.order_workers,
            increment=settings.order_increment,
        ),
    ]


class ContentionHarness:
    """
    Runs groups of workers against a lease store in parallel threads.

    Worker failures are isolated: a worker that cannot acquire its lock or
    hits a store fault reports that outcome and leaves its counter alone,
    and the harness still waits for every other worker.
    """

    def __init__(
        self,
        store: LeaseStore,
        groups: Sequence[WorkerGroup],
        lease_seconds: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        work_seconds: float = 2.0,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        names = [g.name for g in groups]
        if len(set(names)) != len(names):
            raise ValueError(f"Worker group names must be unique: {names}")
        if not groups:
            raise ValueError("At least one worker group is required")
        if work_seconds < 0:
            raise ValueError("work_seconds must not be negative")

        self.store = store
        self.groups = list(groups)
        self.lease_seconds = lease_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.work_seconds = work_seconds
        self.key_prefix = key_prefix
        self.counters: Dict[str, SharedCounter] = {g.name: SharedCounter(g.name) for g in self.groups}

        if work_seconds >= lease_seconds:
            logger.warning(
                "critical section outlasts lease; a second worker may acquire mid-hold",
                work_seconds=work_seconds,
                lease_seconds=lease_seconds,
            )

    @classmethod
    def from_settings(
        cls,
        store: LeaseStore,
        settings: LeaseLockSettings,
        groups: Optional[Sequence[WorkerGroup]] = None,
    ) -> "ContentionHarness":
        return cls(
            store,
            groups if groups is not None else default_groups(settings.harness),
            lease_seconds=settings.lock.lease_seconds,
            retry_policy=RetryPolicy.from_settings(settings.lock),
            work_seconds=settings.harness.work_seconds,
            key_prefix=settings.lock.key_prefix,
        )

    @property
    def lock_keys(self) -> List[str]:
        return sorted({lock_key(g.resource, self.key_prefix) for g in self.groups})

    def reset(self) -> int:
        """Delete any leftover leases for the harness resources and zero the counters."""
        removed = self.store.delete(*self.lock_keys)
        for counter in self.counters.values():
            counter.value = 0
        logger.info("harness state reset", cleared_leases=removed, keys=self.lock_keys)
        return removed

    def assignments(self) -> List[Tuple[int, WorkerGroup]]:
        """Worker ids numbered consecutively across groups, starting at 1."""
        pairs = []
        worker_id = 1
        for group in self.groups:
            for _ in range(group.workers):
                pairs.append((worker_id, group))
                worker_id += 1
        return pairs

    def run(self) -> HarnessReport:
        """
        Run every worker once and report the final counter values.

        Returns:
            HarnessReport comparing each counter with workers x increment
        """
        assignments = self.assignments()
        gate = StartGate()
        started = time.monotonic()

        logger.info(
            "contention run starting",
            workers=len(assignments),
            groups={g.name: g.workers for g in self.groups},
        )

        with ThreadPoolExecutor(max_workers=len(assignments), thread_name_prefix="contention") as executor:
            futures = []
            try:
                for worker_id, group in assignments:
                    futures.append(
                        executor.submit(self._run_worker, worker_id, group, self.counters[group.name], gate)
                    )
                logger.info("starting all workers simultaneously")
            finally:
                gate.release()

            results = [
                self._collect(future, worker_id, group)
                for future, (worker_id, group) in zip(futures, assignments)
            ]

        report = HarnessReport.build(self.groups, self.counters, results, time.monotonic() - started)
        report.metadata.update(
            lease_seconds=self.lease_seconds,
            work_seconds=self.work_seconds,
            retry_attempts=self.retry_policy.max_attempts,
            retry_delay_seconds=self.retry_policy.delay_seconds,
        )
        for g in report.groups:
            log = logger.info if g.consistent else logger.error
            log(
                "group finished",
                group=g.name,
                final_value=g.final_value,
                expected_value=g.expected_value,
                completed=g.completed,
                not_acquired=g.not_acquired,
                faults=g.faults,
                overlaps=list(g.overlaps),
            )
        return report

    def _collect(self, future, worker_id: int, group: WorkerGroup) -> WorkerResult:
        try:
            return future.result()
        except Exception as e:
            logger.exception("worker crashed", worker_id=worker_id, group=group.name)
            return WorkerResult(
                worker_id=worker_id,
                group=group.name,
                resource=group.resource,
                token=None,
                outcome=WorkerOutcome.CRASHED,
                error=f"{type(e).__name__}: {e}",
            )

    def _run_worker(
        self,
        worker_id: int,
        group: WorkerGroup,
        counter: SharedCounter,
        gate: StartGate,
    ) -> WorkerResult:
        gate.wait()

        with WorkerContext(worker_id=worker_id, group=group.name, resource=group.resource):
            lock = DistributedLock(
                self.store,
                group.resource,
                lease_seconds=self.lease_seconds,
                retry_policy=self.retry_policy,
                key_prefix=self.key_prefix,
            )
            result = dict(worker_id=worker_id, group=group.name, resource=group.resource, token=lock.token)
            logger.info("trying to acquire lock", key=lock.key, token=lock.short_token)

            try:
                acquired = lock.acquire_with_retry()
            except StoreFaultError as e:
                logger.error("lease store fault, abandoning", key=lock.key, error=str(e))
                return WorkerResult(outcome=WorkerOutcome.STORE_FAULT, error=str(e), **result)

            if not acquired:
                logger.warning("could not acquire lock", key=lock.key)
                return WorkerResult(outcome=WorkerOutcome.NOT_ACQUIRED, **result)

            logger.info("lock acquired", key=lock.key, token=lock.short_token)
            release_error = None
            try:
                entered_at = time.monotonic()
                read_value, written_value = self._critical_section(counter, group.increment)
                exited_at = time.monotonic()
            finally:
                try:
                    lock.release()
                    logger.info("lock released", key=lock.key, token=lock.short_token)
                except StoreFaultError as e:
                    # No rollback: the writes stand and the lease expires on its own.
                    release_error = str(e)
                    logger.error("lock release failed", key=lock.key, error=release_error)

            return WorkerResult(
                outcome=WorkerOutcome.COMPLETED,
                read_value=read_value,
                written_value=written_value,
                entered_at=entered_at,
                exited_at=exited_at,
                release_error=release_error,
                **result,
            )

    def _critical_section(self, counter: SharedCounter, increment: int) -> Tuple[int, int]:
        current = counter.value
        logger.info("read counter", counter=counter.name, value=current)
        time.sleep(self.work_seconds)
        counter.value = current + increment
        logger.info("updated counter", counter=counter.name, value=counter.value)
        return current, counter.value
