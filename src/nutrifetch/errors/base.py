"""
Base error classes for nutrifetch.

Provides a layered error hierarchy:
- NutriFetchError: Base class for all library errors
- ApiError: Failed ApiClient requests (HTTP status and transport failures)
- StorageError: Host storage failures, absorbed by cache backends
- ValidationError: Invalid options passed to caches or clients
- ConfigError: Unreadable or invalid settings files
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable codes carried by request failures."""

    HTTP_ERROR = "HTTP_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    field_path: str | None = None
    """Path to the problematic option (e.g., 'cache.ttl')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'http', 'transport', 'storage')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class NutriFetchError(Exception):
    """Base class for all nutrifetch errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> NutriFetchError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ApiError(NutriFetchError):
    """A request made through ApiClient failed.

    Attributes:
        code: Failure code
        status: HTTP status, when one applies
    """

    code: ErrorCode
    status: int | None

    def to_dict(self) -> dict[str, Any]:
        """Return the plain error shape handed to callers."""
        raise NotImplementedError


class HttpStatusError(ApiError):
    """The server answered with a non-2xx status.

    Attributes:
        status: HTTP status code
        status_text: Reason phrase
        data: Parsed response body
        url: Requested URL
    """

    def __init__(
        self,
        status: int,
        status_text: str = "",
        data: Any = None,
        *,
        url: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="http")
        ctx.details["status"] = status
        if url:
            ctx.details["url"] = url
        message = f"HTTP {status} {status_text}".rstrip()
        super().__init__(message, ctx)
        self.code = ErrorCode.HTTP_ERROR
        self.status = status
        self.status_text = status_text
        self.data = data
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "statusText": self.status_text,
            "data": self.data,
        }


class TransportError(ApiError):
    """The request never produced an HTTP response.

    Attributes:
        code: TIMEOUT_ERROR or NETWORK_ERROR
        status: 408 for timeouts, otherwise None
        url: Requested URL
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.NETWORK_ERROR,
        status: int | None = None,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="transport")
        ctx.details["code"] = code.value
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.code = code
        self.status = status
        self.url = url
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.status is not None:
            result["status"] = self.status
        return result


class RequestTimeoutError(TransportError):
    """The per-request timeout elapsed before a response arrived."""

    def __init__(
        self,
        message: str = "Request timeout",
        *,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.TIMEOUT_ERROR,
            status=408,
            url=url,
            cause=cause,
        )


class NetworkError(TransportError):
    """Connection-level failure (DNS, refused connection, protocol error)."""

    def __init__(
        self,
        message: str = "Network error",
        *,
        url: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.NETWORK_ERROR,
            url=url,
            cause=cause,
        )


class StorageError(NutriFetchError):
    """Host key/value storage failed.

    Raised by storage areas. Cache backends catch it and report the
    backend as unavailable instead of raising.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        key: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="storage")
        if key:
            ctx.details["key"] = key
        super().__init__(message, ctx)
        self.key = key


class StorageUnavailableError(StorageError):
    """Storage is disabled or cannot be reached."""


class StorageQuotaExceededError(StorageError):
    """Writing the item would exceed the storage quota."""


class ValidationError(NutriFetchError):
    """Invalid option value.

    Raised when:
    - A TTL or timeout is negative
    - A size or attempt count is below one
    - An unknown storage kind or backoff strategy is requested
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if expected is not None:
            ctx.details["expected"] = expected
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.expected = expected
        self.actual = actual


class ConfigError(NutriFetchError):
    """Settings file could not be read or did not validate."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        path: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="config")
        if path:
            ctx.details["path"] = path
        super().__init__(message, ctx)
        self.path = path
