"""
Retry with linear or exponential backoff.

Two entry points:
- execute_with_retry: the request retry loop used by ApiClient, driven by
  a per-call RetryConfig and a retry predicate
- retry: a general helper with capped exponential backoff
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from nutrifetch.errors import ErrorCode, ValidationError
from nutrifetch.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from nutrifetch.resilience.cancel import CancelToken

T = TypeVar("T")

logger = get_logger("nutrifetch.resilience")


class BackoffStrategy(str, Enum):
    """How the wait grows between attempts."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def default_retry_condition(error: BaseException) -> bool:
    """Retry server errors (status >= 500) and network failures.

    Client errors are never retried. Timeouts carry status 408 and code
    TIMEOUT_ERROR, so they are not retried either.
    """
    status = getattr(error, "status", None)
    if isinstance(status, int) and status >= 500:
        return True
    return getattr(error, "code", None) == ErrorCode.NETWORK_ERROR


@dataclass(frozen=True)
class RetryConfig:
    """Retry settings for one logical request.

    Attributes:
        attempts: Total attempts, including the first
        delay_ms: Base delay in milliseconds
        backoff: Linear (delay * n) or exponential (delay * 2**(n-1))
        retry_condition: Predicate deciding whether a failure is retried
        cancel_token: Stops the loop between attempts when cancelled
    """

    attempts: int = 3
    delay_ms: int = 1000
    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    retry_condition: Callable[[BaseException], bool] = default_retry_condition
    cancel_token: CancelToken | None = None

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValidationError(
                "attempts must be at least 1",
                field="attempts",
                expected=">= 1",
                actual=self.attempts,
            )
        if self.delay_ms < 0:
            raise ValidationError(
                "delay_ms must not be negative", field="delay_ms", actual=self.delay_ms
            )
        try:
            object.__setattr__(self, "backoff", BackoffStrategy(self.backoff))
        except ValueError:
            raise ValidationError(
                f"Unknown backoff strategy: {self.backoff!r}",
                field="backoff",
                expected=[s.value for s in BackoffStrategy],
                actual=self.backoff,
            ) from None

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Create a config that makes a single attempt."""
        return cls(attempts=1)

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt.

        Args:
            attempt: Failed attempt number (1-based)

        Returns:
            Delay in seconds
        """
        if self.backoff == BackoffStrategy.EXPONENTIAL:
            delay_ms = self.delay_ms * (2 ** (attempt - 1))
        else:
            delay_ms = self.delay_ms * attempt
        return delay_ms / 1000.0

    def with_overrides(self, overrides: RetryOverrides | None) -> RetryConfig:
        """Apply per-call overrides field by field."""
        if overrides is None:
            return self
        return RetryConfig(
            attempts=overrides.attempts if overrides.attempts is not None else self.attempts,
            delay_ms=overrides.delay_ms if overrides.delay_ms is not None else self.delay_ms,
            backoff=overrides.backoff if overrides.backoff is not None else self.backoff,
            retry_condition=(
                overrides.retry_condition
                if overrides.retry_condition is not None
                else self.retry_condition
            ),
            cancel_token=(
                overrides.cancel_token
                if overrides.cancel_token is not None
                else self.cancel_token
            ),
        )


@dataclass(frozen=True)
class RetryOverrides:
    """Per-call changes to a client's retry defaults. None keeps the default."""

    attempts: int | None = None
    delay_ms: int | None = None
    backoff: BackoffStrategy | None = None
    retry_condition: Callable[[BaseException], bool] | None = None
    cancel_token: CancelToken | None = None


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Run an operation, retrying failures the config allows.

    Attempts are strictly sequential. The last error propagates unchanged
    when attempts run out, when the predicate rejects it, or when the
    config's cancel token is cancelled between attempts.

    Args:
        operation: Async operation to execute
        config: Retry configuration
        sleep: Awaitable delay function (seconds)
        on_retry: Callback(attempt, error, delay_seconds) before each wait

    Returns:
        Operation result
    """
    config = config or RetryConfig()
    token = config.cancel_token
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= config.attempts or not config.retry_condition(e):
                raise
            if token is not None and token.is_cancelled:
                raise

            delay = config.calculate_delay(attempt)
            logger.info(
                "Retrying after failure",
                attempt=attempt,
                attempts=config.attempts,
                delay_ms=delay * 1000,
                error=str(e),
            )
            if on_retry:
                on_retry(attempt, e, delay)

            await sleep(delay)

            if token is not None and token.is_cancelled:
                raise
            attempt += 1


async def retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    factor: float = 2.0,
    on_retry: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Retry any failure with capped exponential backoff.

    The wait after attempt ``n`` is ``min(base_delay * factor**(n-1),
    max_delay)`` seconds. ``on_retry(attempt, error)`` runs before each wait.
    The final attempt's error propagates.

    Example:
        >>> profile = await retry(lambda: fetch_profile(user_id), max_attempts=5)
    """
    if max_attempts < 1:
        raise ValidationError(
            "max_attempts must be at least 1", field="max_attempts", actual=max_attempts
        )

    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= max_attempts:
                raise

            delay = min(base_delay * (factor ** (attempt - 1)), max_delay)
            if on_retry:
                on_retry(attempt, e)
            await sleep(delay)
            attempt += 1
