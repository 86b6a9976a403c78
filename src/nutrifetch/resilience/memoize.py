"""
Unbounded memoization for pure functions.

No TTL and no eviction: use a CacheManager for values that go stale.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


def default_memo_key(*args: Any, **kwargs: Any) -> str:
    """JSON of the positional and keyword arguments."""
    return json.dumps([args, kwargs], sort_keys=True, default=repr)


def memoize(
    fn: Callable[..., Any],
    get_key: Callable[..., str] | None = None,
) -> Callable[..., Any]:
    """Cache ``fn``'s results by a string key.

    For coroutine functions the running task is cached, so concurrent
    callers share one computation; a task that fails is forgotten so the
    next call tries again.

    Args:
        fn: Function to memoize
        get_key: Key builder taking the call's arguments

    Returns:
        Wrapper exposing ``cache`` and ``cache_clear()``

    Example:
        >>> @memoize
        ... def bmr(weight_kg, height_cm, age):
        ...     return 10 * weight_kg + 6.25 * height_cm - 5 * age
    """
    key_fn = get_key or default_memo_key
    cache: dict[str, Any] = {}

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_fn(*args, **kwargs)
            task = cache.get(key)
            if task is None:
                task = asyncio.ensure_future(fn(*args, **kwargs))
                cache[key] = task
            try:
                return await asyncio.shield(task)
            except Exception:
                if cache.get(key) is task and task.done():
                    del cache[key]
                raise

        wrapper: Any = async_wrapper
    else:

        @functools.wraps(fn)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            key = key_fn(*args, **kwargs)
            if key in cache:
                return cache[key]
            result = fn(*args, **kwargs)
            cache[key] = result
            return result

        wrapper = sync_wrapper

    wrapper.cache = cache
    wrapper.cache_clear = cache.clear
    return wrapper
