"""Configuration Package

Purpose: Centralized configuration management for leaselock

Environment-driven settings for the Redis connection, lock lease and retry
tuning, the contention harness scenario and logging.
"""

from .settings import (
    DatabaseSettings,
    HarnessSettings,
    LeaseLockSettings,
    LockSettings,
    LoggingSettings,
    LogLevel,
    get_settings,
    reset_settings,
)

__all__ = [
    "DatabaseSettings",
    "HarnessSettings",
    "LeaseLockSettings",
    "LockSettings",
    "LoggingSettings",
    "LogLevel",
    "get_settings",
    "reset_settings",
]
