"""
nutrifetch: caching and resilient HTTP fetching for nutrition data services.

Provides a TTL cache over pluggable storage backends, a JSON API client
with retry and response caching, and call-rate helpers.
"""

from __future__ import annotations

from nutrifetch.batch import batch, chunked
from nutrifetch.cache import (
    CacheManager,
    CacheOptions,
    CacheStats,
    StorageKind,
    create_memory_cache,
    create_persistent_cache,
    create_session_cache,
)
from nutrifetch.client import (
    ApiClient,
    ApiClientConfig,
    ApiResponse,
    CachePolicy,
    create_api_client,
    create_economics_api_client,
    create_nutrition_api_client,
)
from nutrifetch.config import CacheSettings, load_cache_settings
from nutrifetch.errors import (
    ApiError,
    HttpStatusError,
    NetworkError,
    NutriFetchError,
    RequestTimeoutError,
)
from nutrifetch.registry import CacheRegistry
from nutrifetch.resilience import (
    CancelToken,
    RetryConfig,
    RetryOverrides,
    debounce,
    measure_time,
    memoize,
    retry,
    throttle,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "ApiClient",
    "ApiClientConfig",
    "ApiError",
    "ApiResponse",
    # Cache
    "CacheManager",
    "CacheOptions",
    "CachePolicy",
    "CacheRegistry",
    "CacheSettings",
    "CacheStats",
    "CancelToken",
    # Errors
    "HttpStatusError",
    "NetworkError",
    "NutriFetchError",
    "RequestTimeoutError",
    # Resilience
    "RetryConfig",
    "RetryOverrides",
    "StorageKind",
    "__version__",
    "batch",
    "chunked",
    "create_api_client",
    "create_economics_api_client",
    "create_memory_cache",
    "create_nutrition_api_client",
    "create_persistent_cache",
    "create_session_cache",
    "debounce",
    "load_cache_settings",
    "measure_time",
    "memoize",
    "retry",
    "throttle",
]
