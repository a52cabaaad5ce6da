"""
Unified Configuration System for leaselock

Single source of truth for all configuration using pydantic-settings.

ARCHITECTURAL PRINCIPLES:
- Only this module accesses environment variables directly
- All other modules receive configuration via arguments
- Type-safe validation with automatic conversion
"""

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings
from typing import Optional
from enum import Enum


# =============================================================================
# LOGGING ENUMS
# =============================================================================

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# NESTED CONFIGURATION SECTIONS
# =============================================================================

class DatabaseSettings(BaseSettings):
    """Redis connection configuration for the lease store"""

    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_db: int = Field(default=0, alias="REDIS_DB")
    redis_password: Optional[SecretStr] = Field(default=None, alias="REDIS_PASSWORD")
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")

    # Connection pool
    max_connections: int = Field(default=20, alias="REDIS_MAX_CONNECTIONS")
    socket_connect_timeout: float = Field(default=5.0, alias="REDIS_SOCKET_CONNECT_TIMEOUT")
    socket_timeout: float = Field(default=10.0, alias="REDIS_SOCKET_TIMEOUT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore"
    }


class LockSettings(BaseSettings):
    """Lease and retry tuning for distributed locks"""

    key_prefix: str = Field(default="lock:", alias="LOCK_KEY_PREFIX")
    lease_seconds: float = Field(default=10.0, alias="LOCK_LEASE_SECONDS")

    # Retry policy: fixed attempt count, fixed delay between busy attempts
    retry_attempts: int = Field(default=15, alias="LOCK_RETRY_ATTEMPTS")
    retry_delay_seconds: float = Field(default=0.5, alias="LOCK_RETRY_DELAY_SECONDS")

    @field_validator('lease_seconds')
    @classmethod
    def validate_lease(cls, v):
        """Lease must be long enough to be expressed in whole milliseconds"""
        if v < 0.001:
            raise ValueError("LOCK_LEASE_SECONDS must be at least 0.001")
        return v

    @field_validator('retry_attempts')
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("LOCK_RETRY_ATTEMPTS must be >= 1")
        return v

    @field_validator('retry_delay_seconds')
    @classmethod
    def validate_delay(cls, v):
        if v < 0:
            raise ValueError("LOCK_RETRY_DELAY_SECONDS must not be negative")
        return v

    model_config = {"env_prefix": "", "populate_by_name": True, "extra": "ignore"}


class HarnessSettings(BaseSettings):
    """Contention harness scenario"""

    work_seconds: float = Field(default=2.0, alias="HARNESS_WORK_SECONDS", ge=0)

    inventory_workers: int = Field(default=3, alias="HARNESS_INVENTORY_WORKERS", ge=1)
    inventory_increment: int = Field(default=10, alias="HARNESS_INVENTORY_INCREMENT", ge=1)
    order_workers: int = Field(default=2, alias="HARNESS_ORDER_WORKERS", ge=1)
    order_increment: int = Field(default=1, alias="HARNESS_ORDER_INCREMENT", ge=1)

    model_config = {"env_prefix": "", "populate_by_name": True, "extra": "ignore"}


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: LogLevel = Field(default=LogLevel.INFO, alias="LOG_LEVEL")

    # Structured logging renders JSON lines instead of console output
    structured_logging: bool = Field(default=False, alias="STRUCTURED_LOGGING")

    model_config = {"env_prefix": "", "populate_by_name": True, "extra": "ignore"}


class LeaseLockSettings(BaseSettings):
    """
    Unified configuration for leaselock.

    All configuration access should go through this class.
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    lock: LockSettings = Field(default_factory=LockSettings)
    harness: HarnessSettings = Field(default_factory=HarnessSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "ignore"
    }

    def get_redis_url(self) -> str:
        """Build Redis connection URL"""
        if self.database.redis_url:
            return self.database.redis_url

        auth = ""
        if self.database.redis_password:
            password = self.database.redis_password.get_secret_value()
            auth = f":{password}@"

        return f"redis://{auth}{self.database.redis_host}:{self.database.redis_port}/{self.database.redis_db}"


# =============================================================================
# SINGLETON MANAGEMENT
# =============================================================================

_settings_instance: Optional[LeaseLockSettings] = None


def get_settings() -> LeaseLockSettings:
    """
    Get global settings instance (singleton pattern).

    Raises:
        ConfigurationException: If settings validation fails
    """
    global _settings_instance
    if _settings_instance is None:
        try:
            from dotenv import find_dotenv, load_dotenv

            # .env is looked up from the working directory, not this package
            load_dotenv(find_dotenv(usecwd=True))
            _settings_instance = LeaseLockSettings()
        except Exception as e:
            from leaselock.exceptions import ConfigurationException
            raise ConfigurationException(
                f"Settings initialization failed: {e}",
                details={"original_error": str(e), "error_type": type(e).__name__}
            ) from e
    return _settings_instance


def reset_settings() -> None:
    """
    Reset settings instance (primarily for testing).

    Forces recreation of settings on next get_settings() call.
    """
    global _settings_instance
    _settings_instance = None
