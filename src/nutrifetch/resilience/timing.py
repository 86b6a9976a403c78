"""
Call-rate helpers: debounce, throttle and timing measurement.

Debounced calls are scheduled on the running event loop; delays are in
seconds.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from nutrifetch.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = get_logger("nutrifetch.resilience")


class Debounced:
    """Callable that runs its target after a quiet period.

    Every call restarts the timer; the target runs once with the last
    call's arguments. Coroutine targets are scheduled as tasks.
    """

    def __init__(self, fn: Callable[..., Any], delay: float) -> None:
        self._fn = fn
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[Any] | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire, args, kwargs)

    def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._handle = None
        result = self._fn(*args, **kwargs)
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)

    @property
    def pending(self) -> bool:
        """True while a call is waiting for the quiet period to end."""
        return self._handle is not None

    @property
    def last_task(self) -> asyncio.Task[Any] | None:
        """Task running the most recent coroutine target, if any."""
        return self._task

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Throttled:
    """Callable that runs its target at most once per ``delay`` seconds.

    The first call runs immediately. Calls arriving before ``delay`` has
    elapsed since the last run are dropped and return None.
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        delay: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fn = fn
        self._delay = delay
        self._clock = clock
        self._last_call: float | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        now = self._clock()
        if self._last_call is not None and now - self._last_call < self._delay:
            return None
        self._last_call = now
        return self._fn(*args, **kwargs)

    def reset(self) -> None:
        """Allow the next call through immediately."""
        self._last_call = None


def debounce(fn: Callable[..., Any], delay: float) -> Debounced:
    """Debounce ``fn`` by ``delay`` seconds."""
    return Debounced(fn, delay)


def throttle(fn: Callable[..., Any], delay: float) -> Throttled:
    """Throttle ``fn`` to one run per ``delay`` seconds."""
    return Throttled(fn, delay)


@dataclass
class TimedResult(Generic[T]):
    """Result of a timed call.

    Attributes:
        result: Return value of the call
        duration_ms: Wall time in milliseconds
    """

    result: T
    duration_ms: float


async def measure_time(
    fn: Callable[[], Awaitable[T] | T],
    label: str | None = None,
) -> TimedResult[T]:
    """Run ``fn`` (sync or async) and measure how long it took.

    When ``label`` is given the duration is logged at INFO.
    """
    start = time.perf_counter()
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    duration_ms = (time.perf_counter() - start) * 1000

    if label:
        logger.info("Timed call", label=label, duration_ms=round(duration_ms, 2))

    return TimedResult(result=result, duration_ms=duration_ms)
