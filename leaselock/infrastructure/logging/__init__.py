"""
leaselock Logging Infrastructure

- coordinator: Worker-scoped logging context using contextvars
- config: Structlog configuration with JSON or console rendering
"""

from .coordinator import WorkerContext, worker_context
from .config import LeaseLockLogger, configure_logging, get_logger

__all__ = [
    'WorkerContext',
    'worker_context',
    'LeaseLockLogger',
    'configure_logging',
    'get_logger',
]
