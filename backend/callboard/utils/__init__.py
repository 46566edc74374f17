"""
Utility modules for the Callboard backend.
"""

from .errors import (
    handle_exception,
    raise_not_found,
    raise_forbidden,
    raise_validation_error,
    AppError,
    AuthorizationError,
    NotFoundError,
    SyncError,
    ErrorCodes,
)
from .cache import TTLCache
from .retry import read_retry, READ_MAX_ATTEMPTS

__all__ = [
    # Error handling utilities
    "handle_exception",
    "raise_not_found",
    "raise_forbidden",
    "raise_validation_error",
    "AppError",
    "AuthorizationError",
    "NotFoundError",
    "SyncError",
    "ErrorCodes",
    # Caching / retry
    "TTLCache",
    "read_retry",
    "READ_MAX_ATTEMPTS",
]
