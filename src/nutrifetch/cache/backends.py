"""
Cache backend implementations.

Backends are raw string key/value stores. Serialization belongs to the
CacheManager. Every backend operation reports its outcome as a
BackendResult so that "not cached" and "cache broken" stay distinguishable.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Generic, TypeVar

from nutrifetch.cache.storage import DirectoryStorage, SessionStorage, StorageArea
from nutrifetch.errors import StorageError, ValidationError

T = TypeVar("T")

DEFAULT_PREFIX = "cache:"


class BackendStatus(str, Enum):
    """Outcome of a backend operation."""

    OK = "ok"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class BackendResult(Generic[T]):
    """Result of a backend operation.

    Attributes:
        status: Whether the underlying store could be used
        value: Operation value when OK (None means absent for reads)
        error: Storage failure when UNAVAILABLE
    """

    status: BackendStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, value: Any = None) -> BackendResult[Any]:
        return cls(status=BackendStatus.OK, value=value)

    @classmethod
    def unavailable(cls, error: Exception) -> BackendResult[Any]:
        return cls(status=BackendStatus.UNAVAILABLE, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == BackendStatus.OK


class StorageKind(str, Enum):
    """Kinds of backend a CacheManager can be built on."""

    MEMORY = "memory"
    PERSISTENT = "persistent"
    SESSION = "session"

    @classmethod
    def parse(cls, value: str | StorageKind) -> StorageKind:
        """Parse a storage name, accepting the browser-style aliases.

        Raises:
            ValidationError: Unknown storage name
        """
        if isinstance(value, StorageKind):
            return value
        aliases = {
            "localStorage": cls.PERSISTENT,
            "sessionStorage": cls.SESSION,
        }
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown storage kind: {value!r}",
                field="storage",
                expected=[k.value for k in cls] + list(aliases),
                actual=value,
            ) from None


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> BackendResult[str]:
        """Get a raw value.

        Args:
            key: Cache key

        Returns:
            OK with the value (None when absent), or UNAVAILABLE
        """
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> BackendResult[None]:
        """Store a raw value."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> BackendResult[None]:
        """Remove a value; missing keys are not an error."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> BackendResult[None]:
        """Remove every value owned by this backend."""
        raise NotImplementedError

    @abstractmethod
    def keys(self) -> BackendResult[list[str]]:
        """List keys owned by this backend."""
        raise NotImplementedError

    def close(self) -> None:
        """Close the backend (cleanup)."""
        pass


class MemoryBackend(CacheBackend):
    """In-process dict backend. Never unavailable."""

    def __init__(self) -> None:
        self._storage: dict[str, str] = {}

    def get(self, key: str) -> BackendResult[str]:
        return BackendResult.ok(self._storage.get(key))

    def set(self, key: str, value: str) -> BackendResult[None]:
        self._storage[key] = value
        return BackendResult.ok()

    def delete(self, key: str) -> BackendResult[None]:
        self._storage.pop(key, None)
        return BackendResult.ok()

    def clear(self) -> BackendResult[None]:
        self._storage.clear()
        return BackendResult.ok()

    def keys(self) -> BackendResult[list[str]]:
        return BackendResult.ok(list(self._storage))


class PrefixedStorageBackend(CacheBackend):
    """Backend living inside a shared storage area under a key prefix.

    Several backends can share one storage area without colliding as long
    as their prefixes differ. Storage failures never escape: they are
    reported as UNAVAILABLE results.
    """

    def __init__(self, storage: StorageArea, prefix: str = DEFAULT_PREFIX) -> None:
        """Initialize prefixed backend.

        Args:
            storage: Shared storage area
            prefix: Namespace for this backend's keys
        """
        self._storage = storage
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def storage(self) -> StorageArea:
        return self._storage

    def get(self, key: str) -> BackendResult[str]:
        try:
            return BackendResult.ok(self._storage.get_item(self._prefix + key))
        except StorageError as e:
            return BackendResult.unavailable(e)

    def set(self, key: str, value: str) -> BackendResult[None]:
        try:
            self._storage.set_item(self._prefix + key, value)
        except StorageError as e:
            return BackendResult.unavailable(e)
        return BackendResult.ok()

    def delete(self, key: str) -> BackendResult[None]:
        try:
            self._storage.remove_item(self._prefix + key)
        except StorageError as e:
            return BackendResult.unavailable(e)
        return BackendResult.ok()

    def clear(self) -> BackendResult[None]:
        try:
            for full_key in self._storage.item_keys():
                if full_key.startswith(self._prefix):
                    self._storage.remove_item(full_key)
        except StorageError as e:
            return BackendResult.unavailable(e)
        return BackendResult.ok()

    def keys(self) -> BackendResult[list[str]]:
        try:
            full_keys = self._storage.item_keys()
        except StorageError as e:
            return BackendResult.unavailable(e)
        return BackendResult.ok([
            k[len(self._prefix):] for k in full_keys if k.startswith(self._prefix)
        ])


def default_cache_dir() -> Path:
    """Directory used by persistent backends when none is given."""
    env_dir = os.getenv("NUTRIFETCH_CACHE_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".cache" / "nutrifetch"


class PersistentBackend(PrefixedStorageBackend):
    """Backend that survives restarts, stored in a cache directory.

    Example:
        >>> backend = PersistentBackend("/tmp/nutri-cache", prefix="foods:")
        >>> backend.set("apple", "{...}")
    """

    def __init__(
        self,
        path: str | Path | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        super().__init__(DirectoryStorage(path or default_cache_dir()), prefix)


class SessionBackend(PrefixedStorageBackend):
    """Backend scoped to a SessionStorage (a fresh one when not given)."""

    def __init__(
        self,
        session: SessionStorage | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        super().__init__(session if session is not None else SessionStorage(), prefix)


def create_backend(
    storage: str | StorageKind = StorageKind.MEMORY,
    *,
    prefix: str = DEFAULT_PREFIX,
    path: str | Path | None = None,
    session: SessionStorage | None = None,
) -> CacheBackend:
    """Create a backend of the requested kind.

    Args:
        storage: Backend kind ("memory", "persistent", "session" or alias)
        prefix: Key prefix for persistent and session backends
        path: Directory for persistent backends
        session: Shared session storage for session backends

    Returns:
        New backend instance
    """
    kind = StorageKind.parse(storage)
    if kind == StorageKind.PERSISTENT:
        return PersistentBackend(path, prefix=prefix)
    if kind == StorageKind.SESSION:
        return SessionBackend(session, prefix=prefix)
    return MemoryBackend()
