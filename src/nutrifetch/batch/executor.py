"""
Chunked batch execution.

Chunks run one after another; items inside a chunk run concurrently.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from nutrifetch.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator, Sequence

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValidationError("batch size must be at least 1", field="batch_size", actual=size)
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def batch(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
) -> list[R]:
    """Process items in sequential chunks of concurrent calls.

    Results come back in input order whatever order the calls finish in.
    The first failure propagates and later chunks are not started.

    Example:
        >>> foods = await batch(food_ids, client_fetch_food, batch_size=3)
    """
    results: list[R] = []
    for chunk in chunked(items, batch_size):
        results.extend(await asyncio.gather(*(processor(item) for item in chunk)))
    return results
