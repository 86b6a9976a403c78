"""
Caching module for nutrifetch.

Provides TTL caching with LRU-style eviction over memory, persistent and
session backends.
"""

from nutrifetch.cache.backends import (
    DEFAULT_PREFIX,
    BackendResult,
    BackendStatus,
    CacheBackend,
    MemoryBackend,
    PersistentBackend,
    PrefixedStorageBackend,
    SessionBackend,
    StorageKind,
    create_backend,
    default_cache_dir,
)
from nutrifetch.cache.key import normalize_url, request_cache_key
from nutrifetch.cache.manager import (
    CacheEntry,
    CacheManager,
    CacheOptions,
    CacheStats,
    create_memory_cache,
    create_persistent_cache,
    create_session_cache,
)
from nutrifetch.cache.storage import DirectoryStorage, SessionStorage, StorageArea

__all__ = [
    "DEFAULT_PREFIX",
    "BackendResult",
    "BackendStatus",
    "CacheBackend",
    "CacheEntry",
    "CacheManager",
    "CacheOptions",
    "CacheStats",
    "DirectoryStorage",
    "MemoryBackend",
    "PersistentBackend",
    "PrefixedStorageBackend",
    "SessionBackend",
    "SessionStorage",
    "StorageArea",
    "StorageKind",
    "create_backend",
    "create_memory_cache",
    "create_persistent_cache",
    "create_session_cache",
    "default_cache_dir",
    "normalize_url",
    "request_cache_key",
]
