"""Custom exceptions for leaselock."""

from typing import Any, Dict, Optional


class LeaseLockException(Exception):
    """Base exception for all leaselock errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationException(LeaseLockException):
    """Raised when configuration is invalid."""
    pass


class ExternalServiceException(LeaseLockException):
    """Raised when an external service call fails."""
    pass


class StoreFaultError(ExternalServiceException):
    """
    Raised when the lease store cannot be reached or answers with a protocol error.

    Never raised for a busy lease: contention is reported as a plain False.
    """
    pass


class LockAcquisitionError(LeaseLockException):
    """Raised when lock cannot be acquired within the retry budget."""
    pass
