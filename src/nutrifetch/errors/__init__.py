"""
Error hierarchy for nutrifetch.

Provides structured error types for request failures, storage failures
and invalid configuration.
"""

from nutrifetch.errors.base import (
    ApiError,
    ConfigError,
    ErrorCode,
    ErrorContext,
    HttpStatusError,
    NetworkError,
    NutriFetchError,
    RequestTimeoutError,
    StorageError,
    StorageQuotaExceededError,
    StorageUnavailableError,
    TransportError,
    ValidationError,
)

__all__ = [
    "ApiError",
    "ConfigError",
    "ErrorCode",
    "ErrorContext",
    "HttpStatusError",
    "NetworkError",
    "NutriFetchError",
    "RequestTimeoutError",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageUnavailableError",
    "TransportError",
    "ValidationError",
]
