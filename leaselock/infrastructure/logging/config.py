"""
leaselock Logging Configuration

Provides logging configuration using structlog with worker context
injection, field deduplication and JSON or console rendering.
"""

import logging
from typing import Any, Dict, Optional, Union

import structlog

# (field, canonical): field is dropped when it repeats the canonical value
_REDUNDANT_FIELDS = (
    ("group", "resource"),
    ("counter", "group"),
    ("counter", "resource"),
)


class LeaseLockLogger:
    """
    Logger configuration with deduplication and structured logging.

    This class configures structlog with processors for worker context
    injection, deduplication and output rendering. It ensures consistent
    log structure across the lock, the harness and the CLI.
    """

    def __init__(self, level: Union[str, int] = logging.INFO, structured: bool = False):
        """Initialize the logger configuration."""
        self.level = logging.getLevelName(level) if isinstance(level, str) else level
        self.structured = structured
        self.configure_structlog()

    def configure_structlog(self) -> None:
        """
        Configure structlog with comprehensive processors.

        Sets up a processor chain that handles:
        - Log level filtering
        - Logger name and level addition
        - Timestamp formatting
        - Exception information
        - Worker context injection
        - Field deduplication
        - JSON or console output
        """
        # Configure standard library logging to use structlog formatting
        logging.basicConfig(
            format="%(message)s",
            level=self.level,
            force=True,
        )

        renderer = (
            structlog.processors.JSONRenderer()
            if self.structured
            else structlog.dev.ConsoleRenderer(colors=False)
        )

        structlog.configure(
            processors=[
                # Standard processors
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),

                # Custom processors
                self.add_worker_context,
                self.deduplicate_fields,

                renderer,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def add_worker_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add worker context without duplication.

        Args:
            logger: Logger instance
            method_name: Log method name
            event_dict: Event dictionary to process

        Returns:
            Enhanced event dictionary with worker context
        """
        from leaselock.infrastructure.logging.coordinator import worker_context

        ctx = worker_context.get()
        if ctx:
            if 'worker_id' not in event_dict:
                event_dict['worker_id'] = ctx.worker_id
            if 'group' not in event_dict and ctx.group:
                event_dict['group'] = ctx.group
            if 'resource' not in event_dict and ctx.resource:
                event_dict['resource'] = ctx.resource
            for key, value in ctx.attributes.items():
                event_dict.setdefault(key, value)

        return event_dict

    @staticmethod
    def deduplicate_fields(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Drop context fields that repeat another field's value.

        Worker groups are usually named after their resource, so a line
        carrying both group="orders" and resource="orders" keeps only the
        resource. The same goes for a counter named after its group.

        Args:
            logger: Logger instance
            method_name: Log method name
            event_dict: Event dictionary to process

        Returns:
            Deduplicated event dictionary
        """
        redundant = {
            name for name, canonical in _REDUNDANT_FIELDS
            if name in event_dict and canonical in event_dict
            and event_dict[name] == event_dict[canonical]
        }
        return {key: value for key, value in event_dict.items() if key not in redundant}


# Singleton configuration instance
_logger_config: Optional[LeaseLockLogger] = None


def configure_logging(level: Union[str, int] = logging.INFO, structured: bool = False) -> LeaseLockLogger:
    """
    (Re)configure logging explicitly, e.g. from CLI settings.

    Args:
        level: Log level name or number
        structured: Render JSON lines instead of console output

    Returns:
        The active LeaseLockLogger configuration
    """
    global _logger_config
    _logger_config = LeaseLockLogger(level=level, structured=structured)
    return _logger_config


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Uses a singleton so structlog is configured once unless
    configure_logging() is called explicitly.

    Args:
        name: Logger name, typically module or class name

    Returns:
        Configured structlog BoundLogger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("lock acquired", key="lock:inventory")
    """
    global _logger_config
    if _logger_config is None:
        _logger_config = LeaseLockLogger()

    return structlog.get_logger(name)
