import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WorkerOutcome(str, Enum):
    """
    Per-worker result of one harness run.

    COMPLETED      lease acquired, critical section executed
    NOT_ACQUIRED   retry budget exhausted while the lock stayed busy
    STORE_FAULT    lease store unreachable during acquisition
    CRASHED        unexpected error inside the worker
    """

    COMPLETED = "COMPLETED"
    NOT_ACQUIRED = "NOT_ACQUIRED"
    STORE_FAULT = "STORE_FAULT"
    CRASHED = "CRASHED"


class SharedCounter:
    """
    Plain mutable integer standing in for a resource that needs serialized access.

    Deliberately unsynchronized: only the distributed lease keeps concurrent
    read-modify-write cycles from interleaving.
    """

    def __init__(self, name: str, value: int = 0):
        self.name = name
        self.value = value

    def __repr__(self) -> str:
        return f"SharedCounter(name={self.name!r}, value={self.value})"


@dataclass(frozen=True)
class WorkerGroup:
    """Workers contending for one named resource, each adding a fixed increment."""

    name: str
    resource: str
    workers: int
    increment: int

    @property
    def expected_total(self) -> int:
        return self.workers * self.increment


@dataclass(frozen=True)
class WorkerResult:
    """
    Immutable record of what one worker did.

    entered_at/exited_at are time.monotonic() readings bracketing the
    critical section; they are None unless the lease was acquired.
    """

    worker_id: int
    group: str
    resource: str
    token: Optional[str]
    outcome: WorkerOutcome
    read_value: Optional[int] = None
    written_value: Optional[int] = None
    entered_at: Optional[float] = None
    exited_at: Optional[float] = None
    error: Optional[str] = None
    release_error: Optional[str] = None


class StartGate:
    """
    One-shot start signal: Armed until released, then Released for good.

    Workers block in wait() until the harness calls release(); after that
    wait() never blocks again.
    """

    def __init__(self):
        self._event = threading.Event()

    @property
    def is_released(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def release(self) -> None:
        self._event.set()
