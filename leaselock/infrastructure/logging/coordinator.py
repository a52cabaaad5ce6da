"""
leaselock Logging Coordinator

Provides worker-scoped logging context. Each harness worker runs in its own
thread; the context variable is set inside that thread so every log line the
worker (and the lock it drives) emits carries the worker identity.
"""

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class WorkerContext:
    """
    Worker-scoped data injected into log entries.

    Attributes:
        worker_id: Harness worker number
        group: Worker group name (e.g. "inventory")
        resource: Logical resource the worker contends for
        attributes: Additional worker-scoped metadata
    """
    worker_id: int
    group: Optional[str] = None
    resource: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __enter__(self):
        """Enter the context manager - set this context as active."""
        self._token = worker_context.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit the context manager - restore the previous context."""
        worker_context.reset(self._token)
        return False


worker_context: ContextVar[Optional[WorkerContext]] = ContextVar("worker_context", default=None)
