"""
Resilience layer - retry, backoff and call-rate helpers.

This module provides:
- execute_with_retry: Request retry loop with linear/exponential backoff
- retry: Capped exponential backoff for any async call
- CancelToken: Stops a retry loop between attempts
- debounce / throttle: Call-rate control on the event loop
- memoize: Unbounded memoization for pure functions
- measure_time: Duration measurement for sync or async calls
"""

from nutrifetch.resilience.cancel import CancelReason, CancelState, CancelToken
from nutrifetch.resilience.memoize import default_memo_key, memoize
from nutrifetch.resilience.retry import (
    BackoffStrategy,
    RetryConfig,
    RetryOverrides,
    default_retry_condition,
    execute_with_retry,
    retry,
)
from nutrifetch.resilience.timing import (
    Debounced,
    Throttled,
    TimedResult,
    debounce,
    measure_time,
    throttle,
)

__all__ = [
    # Retry
    "BackoffStrategy",
    # Cancellation
    "CancelReason",
    "CancelState",
    "CancelToken",
    # Timing
    "Debounced",
    "RetryConfig",
    "RetryOverrides",
    "Throttled",
    "TimedResult",
    "debounce",
    "default_memo_key",
    "default_retry_condition",
    "execute_with_retry",
    "measure_time",
    # Memoization
    "memoize",
    "retry",
    "throttle",
]
