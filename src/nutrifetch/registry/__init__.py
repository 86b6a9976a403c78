"""
Cache registry - owns the application's standard caches.

Usage::

    registry = CacheRegistry.from_settings(load_cache_settings())
    registry.global_cache.set("foods:apple", {"kcal": 52})
    ...
    registry.close()
"""

from __future__ import annotations

from typing import Any

from nutrifetch.cache import CacheManager, SessionStorage, create_backend
from nutrifetch.config import CacheProfile, CacheSettings
from nutrifetch.telemetry import get_logger

logger = get_logger("nutrifetch.registry")


def _build_cache(name: str, profile: CacheProfile, session: SessionStorage | None) -> CacheManager[Any]:
    options = profile.to_options()
    backend = create_backend(
        options.storage,
        prefix=options.prefix,
        path=options.path,
        session=session,
    )
    return CacheManager(options, backend, name=name)


class CacheRegistry:
    """Holds the global, persistent and session caches.

    The caches are built once from settings. Callers receive references;
    the registry owner decides when to close them.
    """

    def __init__(
        self,
        global_cache: CacheManager[Any],
        persistent_cache: CacheManager[Any],
        session_cache: CacheManager[Any],
    ) -> None:
        self._global = global_cache
        self._persistent = persistent_cache
        self._session = session_cache
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings | None = None,
        *,
        session: SessionStorage | None = None,
    ) -> CacheRegistry:
        """Build the standard caches.

        Args:
            settings: Cache settings (defaults to built-in profiles)
            session: Session storage area shared by session-backed caches
        """
        settings = settings or CacheSettings()
        session = session or SessionStorage()
        registry = cls(
            _build_cache("global", settings.global_, session),
            _build_cache("persistent", settings.persistent, session),
            _build_cache("session", settings.session, session),
        )
        logger.debug(
            "Cache registry created",
            global_storage=settings.global_.storage.value,
            persistent_storage=settings.persistent.storage.value,
            session_storage=settings.session.storage.value,
        )
        return registry

    @property
    def global_cache(self) -> CacheManager[Any]:
        return self._global

    @property
    def persistent_cache(self) -> CacheManager[Any]:
        return self._persistent

    @property
    def session_cache(self) -> CacheManager[Any]:
        return self._session

    def caches(self) -> dict[str, CacheManager[Any]]:
        """Get all caches by name."""
        return {
            "global": self._global,
            "persistent": self._persistent,
            "session": self._session,
        }

    def stats(self) -> dict[str, dict[str, Any]]:
        """Get statistics for every cache."""
        return {name: cache.get_stats().to_dict() for name, cache in self.caches().items()}

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close every cache. Safe to call more than once."""
        if self._closed:
            return
        for cache in self.caches().values():
            cache.close()
        self._closed = True

    def __enter__(self) -> CacheRegistry:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["CacheRegistry"]
