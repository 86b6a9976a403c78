"""
Host key/value storage areas.

A storage area is the shared string store a prefixed cache backend lives
in, the way browser code keeps caches inside localStorage or
sessionStorage. Storage areas raise StorageError subclasses on failure;
backends decide what a failure means.
"""

from __future__ import annotations

import errno
import hashlib
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path

from nutrifetch.errors import StorageQuotaExceededError, StorageUnavailableError

_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageArea(ABC):
    """Abstract string-to-string store shared by several backends."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value or None."""
        raise NotImplementedError

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value.

        Raises:
            StorageQuotaExceededError: The store is full
            StorageUnavailableError: The store cannot be written
        """
        raise NotImplementedError

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a value; missing keys are ignored."""
        raise NotImplementedError

    @abstractmethod
    def item_keys(self) -> list[str]:
        """Return every key in the store, whoever wrote it."""
        raise NotImplementedError


class DirectoryStorage(StorageArea):
    """Persistent storage area backed by a directory of JSON files.

    Each item is one file named after the SHA-256 of its key, holding
    ``{"key": ..., "value": ...}``. Items survive process restarts and are
    visible to every DirectoryStorage opened on the same path.

    Example:
        >>> storage = DirectoryStorage("/var/cache/nutrifetch")
        >>> storage.set_item("cache:foods", "[]")
        >>> storage.get_item("cache:foods")
        '[]'
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize directory storage.

        Args:
            path: Directory holding the item files (created on first write)
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _item_path(self, key: str) -> Path:
        key_hash = hashlib.sha256(key.encode()).hexdigest()
        return self._path / f"{key_hash}.json"

    def get_item(self, key: str) -> str | None:
        try:
            content = self._item_path(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read item: {e}", key=key) from e

        try:
            record = json.loads(content.decode("utf-8"))
            value = record["value"]
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError):
            # Torn or foreign file
            return None
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        path = self._item_path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self._path.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps({"key": key, "value": value}), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            if e.errno in _FULL_ERRNOS:
                raise StorageQuotaExceededError(f"Storage full: {e}", key=key) from e
            raise StorageUnavailableError(f"Cannot write item: {e}", key=key) from e

    def remove_item(self, key: str) -> None:
        try:
            self._item_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot remove item: {e}", key=key) from e

    def item_keys(self) -> list[str]:
        if not self._path.exists():
            return []

        keys: list[str] = []
        try:
            paths = sorted(self._path.glob("*.json"))
        except OSError as e:
            raise StorageUnavailableError(f"Cannot list items: {e}") from e

        for path in paths:
            try:
                key = json.loads(path.read_bytes().decode("utf-8"))["key"]
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError):
                continue
            if isinstance(key, str):
                keys.append(key)
        return keys


class SessionStorage(StorageArea):
    """In-process storage area living as long as the session object.

    Models a browser session store: shared by every backend handed the
    same instance, optionally bounded by a quota, and switchable off.

    Example:
        >>> session = SessionStorage(quota_bytes=5 * 1024 * 1024)
        >>> session.set_item("cache:plan", "{}")
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        """Initialize session storage.

        Args:
            quota_bytes: Maximum total size of keys plus values, in characters
        """
        self._items: dict[str, str] = {}
        self._quota_bytes = quota_bytes
        self._enabled = True

    @property
    def used_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items())

    @property
    def enabled(self) -> bool:
        return self._enabled

    def disable(self) -> None:
        """Make every operation fail, as a store turned off by the host."""
        self._enabled = False

    def enable(self) -> None:
        self._enabled = True

    def _check_enabled(self) -> None:
        if not self._enabled:
            raise StorageUnavailableError("Session storage is disabled")

    def get_item(self, key: str) -> str | None:
        self._check_enabled()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if self._quota_bytes is not None:
            current = self._items.get(key)
            projected = self.used_bytes + len(key) + len(value)
            if current is not None:
                projected -= len(key) + len(current)
            if projected > self._quota_bytes:
                raise StorageQuotaExceededError(
                    f"Session storage quota of {self._quota_bytes} exceeded",
                    key=key,
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._items.pop(key, None)

    def item_keys(self) -> list[str]:
        self._check_enabled()
        return list(self._items)
