"""
Cache manager with TTL expiry, LRU-style eviction and statistics.

Wraps a string backend: entries are serialized as JSON together with
their creation time, TTL and access metadata.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import math
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from nutrifetch.cache.backends import (
    DEFAULT_PREFIX,
    BackendResult,
    CacheBackend,
    StorageKind,
    create_backend,
)
from nutrifetch.errors import ValidationError
from nutrifetch.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = get_logger("nutrifetch.cache")

# Share of ranked entries removed when the cache is full
EVICTION_FRACTION = 0.1

_MISSING: Any = object()


class CacheEntry(BaseModel):
    """A stored cache entry.

    Attributes:
        data: Cached value
        timestamp: Creation time (epoch seconds)
        ttl: Lifetime in seconds
        access_count: Number of reads
        last_accessed: Time of the most recent read (or creation)
    """

    model_config = ConfigDict(extra="ignore")

    data: Any = None
    timestamp: float
    ttl: float
    access_count: int = 0
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        """Check if the entry is past its lifetime at ``now``."""
        return now - self.timestamp > self.ttl


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Reads that returned a live entry
        misses: Reads that found nothing, an expired or a malformed entry
        sets: Writes
        deletes: Removals, including expiry and eviction removals
        evictions: Entries removed to make room
        backend_errors: Backend operations that found storage unavailable
        size: Number of stored keys when the snapshot was taken
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    backend_errors: int = 0
    size: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate (0.0 to 1.0)."""
        total = self.total_requests
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "backend_errors": self.backend_errors,
            "hit_rate": self.hit_rate,
            "size": self.size,
        }

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.deletes = 0
        self.evictions = 0
        self.backend_errors = 0
        self.size = 0


@dataclass(frozen=True)
class CacheOptions:
    """Cache configuration.

    Attributes:
        ttl: Default TTL in seconds
        max_size: Number of keys at which writes trigger eviction
        storage: Backend kind used when no backend is injected
        serialize: Convert rich values (datetimes, models, sets) to JSON form
        prefix: Key prefix for persistent and session backends
        path: Directory for the persistent backend
        coalesce: Share one factory call between concurrent get_or_set callers
    """

    ttl: float = 300.0
    max_size: int = 1000
    storage: StorageKind | str = StorageKind.MEMORY
    serialize: bool = True
    prefix: str = DEFAULT_PREFIX
    path: str | Path | None = None
    coalesce: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "storage", StorageKind.parse(self.storage))
        if self.ttl < 0:
            raise ValidationError(
                "TTL must not be negative", field="ttl", expected=">= 0", actual=self.ttl
            )
        if self.max_size < 1:
            raise ValidationError(
                "max_size must be at least 1",
                field="max_size",
                expected=">= 1",
                actual=self.max_size,
            )


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class CacheManager(Generic[T]):
    """TTL cache over a pluggable string backend.

    Expired entries are removed lazily on read or explicitly with
    ``prune()``. When a write finds the cache at ``max_size`` keys, the
    least recently read 10% of entries are evicted first.

    Example:
        >>> cache = CacheManager(CacheOptions(ttl=60, max_size=500))
        >>> cache.set("foods:apple", {"kcal": 52})
        >>> cache.get("foods:apple")
        {'kcal': 52}
        >>> plan = await cache.get_or_set("plan:42", load_plan, ttl=600)
    """

    def __init__(
        self,
        options: CacheOptions | None = None,
        backend: CacheBackend | None = None,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize cache manager.

        Args:
            options: Cache options
            backend: Backend to own (defaults to one built from options.storage)
            name: Name used in log records
            clock: Time source returning epoch seconds
        """
        self._options = options or CacheOptions()
        self._backend = backend or create_backend(
            self._options.storage,
            prefix=self._options.prefix,
            path=self._options.path,
        )
        self._name = name
        self._clock = clock
        self._stats = CacheStats()
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    @property
    def options(self) -> CacheOptions:
        return self._options

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def name(self) -> str:
        return self._name

    def _unwrap(self, result: BackendResult[Any], operation: str, key: str | None = None) -> Any:
        """Collapse an unavailable backend result to None, recording it."""
        if result.is_ok:
            return result.value
        self._stats.backend_errors += 1
        logger.warning(
            "Cache backend unavailable",
            cache=self._name,
            operation=operation,
            key=key,
            error=str(result.error),
        )
        return None

    def _encode(self, entry: CacheEntry) -> str:
        if self._options.serialize:
            return entry.model_dump_json()
        return json.dumps(entry.model_dump())

    def _decode(self, raw: str) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate_json(raw)
        except PydanticValidationError:
            return None

    def get(self, key: str, default: Any = None) -> T | Any:
        """Get a live value.

        Expired and malformed entries are deleted and count as misses.
        A hit bumps the entry's access metadata and writes it back.

        Args:
            key: Cache key
            default: Returned on a miss

        Returns:
            Cached value or ``default``
        """
        raw = self._unwrap(self._backend.get(key), "get", key)
        if raw is None:
            self._stats.misses += 1
            return default

        entry = self._decode(raw)
        now = self._clock()
        if entry is None or entry.is_expired(now):
            self.delete(key)
            self._stats.misses += 1
            return default

        entry.access_count += 1
        entry.last_accessed = now
        self._unwrap(self._backend.set(key, self._encode(entry)), "set", key)

        self._stats.hits += 1
        return entry.data

    def set(self, key: str, data: T, ttl: float | None = None) -> None:
        """Store a value.

        Args:
            key: Cache key
            data: Value to cache (JSON-native unless options.serialize)
            ttl: Lifetime in seconds (None means the configured default)

        Raises:
            ValidationError: Negative TTL
            TypeError: ``serialize`` is off and the value is not JSON-native
        """
        if ttl is not None and ttl < 0:
            raise ValidationError("TTL must not be negative", field="ttl", actual=ttl)

        now = self._clock()
        entry = CacheEntry(
            data=data,
            timestamp=now,
            ttl=ttl if ttl is not None else self._options.ttl,
            access_count=0,
            last_accessed=now,
        )
        raw = self._encode(entry)

        self._evict_if_necessary()

        self._unwrap(self._backend.set(key, raw), "set", key)
        self._stats.sets += 1

    def delete(self, key: str) -> None:
        """Remove a key. Always counted, whether or not it existed."""
        self._unwrap(self._backend.delete(key), "delete", key)
        self._stats.deletes += 1

    def has(self, key: str) -> bool:
        """Check for a live, non-None entry.

        This is a full ``get``: it counts a hit or miss, refreshes access
        metadata and may delete an expired entry. A stored None reads as
        absent.
        """
        return self.get(key) is not None

    def clear(self) -> None:
        """Remove every entry in this cache's partition and reset statistics."""
        self._unwrap(self._backend.clear(), "clear")
        self._stats.reset()

    def keys(self) -> list[str]:
        """Get all stored keys, live or not."""
        return self._unwrap(self._backend.keys(), "keys") or []

    def size(self) -> int:
        """Get the number of stored keys."""
        return len(self.keys())

    def prune(self) -> int:
        """Delete expired and malformed entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        pruned = 0

        for key in self.keys():
            raw = self._unwrap(self._backend.get(key), "get", key)
            if raw is None:
                continue
            entry = self._decode(raw)
            if entry is None or entry.is_expired(now):
                self.delete(key)
                pruned += 1

        if pruned:
            logger.debug("Pruned expired entries", cache=self._name, count=pruned)
        return pruned

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T] | T],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value, or compute, store and return it.

        ``factory`` may be sync or async and is called at most once per
        call. Without ``options.coalesce`` concurrent callers missing the
        same key each run the factory and the last write wins; with it,
        they await the first caller's computation.

        Args:
            key: Cache key
            factory: Producer of the value on a miss
            ttl: Lifetime in seconds for a newly stored value

        Returns:
            Cached or freshly computed value
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        if not self._options.coalesce:
            value = await _resolve(factory())
            self.set(key, value, ttl)
            return value

        inflight = self._inflight.get(key)
        if inflight is not None:
            return await asyncio.shield(inflight)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await _resolve(factory())
            self.set(key, value, ttl)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Retrieve it here so an unawaited future does not log a warning
            future.exception()
            raise
        else:
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def get_stats(self) -> CacheStats:
        """Get a statistics snapshot including the current size."""
        return replace(self._stats, size=self.size())

    @property
    def stats(self) -> CacheStats:
        """Get live statistics counters (size is not maintained here)."""
        return self._stats

    def close(self) -> None:
        """Close the backend."""
        self._backend.close()

    def _evict_if_necessary(self) -> None:
        """Evict the least recently read entries when at max size."""
        keys = self.keys()
        if len(keys) < self._options.max_size:
            return

        ranked: list[tuple[float, str]] = []
        for key in keys:
            raw = self._unwrap(self._backend.get(key), "get", key)
            if raw is None:
                continue
            entry = self._decode(raw)
            if entry is not None:
                ranked.append((entry.last_accessed, key))

        ranked.sort(key=lambda item: item[0])
        to_remove = math.ceil(len(ranked) * EVICTION_FRACTION)

        for _, key in ranked[:to_remove]:
            self.delete(key)
            self._stats.evictions += 1

        logger.debug(
            "Evicted least recently used entries",
            cache=self._name,
            evicted=to_remove,
            size=len(keys),
        )


def create_memory_cache(**options: Any) -> CacheManager[Any]:
    """Create an in-process cache."""
    return CacheManager(CacheOptions(storage=StorageKind.MEMORY, **options))


def create_persistent_cache(**options: Any) -> CacheManager[Any]:
    """Create a cache stored in the persistent cache directory."""
    return CacheManager(CacheOptions(storage=StorageKind.PERSISTENT, **options))


def create_session_cache(**options: Any) -> CacheManager[Any]:
    """Create a cache stored in a fresh session storage area."""
    return CacheManager(CacheOptions(storage=StorageKind.SESSION, **options))
