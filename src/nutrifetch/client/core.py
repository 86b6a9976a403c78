"""
ApiClient - JSON HTTP client with timeout, retry and GET response caching.

Request flow:
1. GET only: look up the response cache; a live entry skips the network
2. Send the request with a total per-attempt timeout
3. Retry failures the retry predicate accepts, with backoff between attempts
4. GET only: store 2xx responses in the cache
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

import httpx

from nutrifetch.cache import CacheManager, CacheOptions, request_cache_key
from nutrifetch.client.config import ApiClientConfig, CachePolicy
from nutrifetch.client.response import ApiResponse
from nutrifetch.errors import HttpStatusError, NetworkError, RequestTimeoutError
from nutrifetch.resilience.retry import RetryConfig, RetryOverrides, execute_with_retry
from nutrifetch.telemetry import get_logger, log_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger("nutrifetch.client")

_UA_VERSION: str | None = None


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            _UA_VERSION = version("nutrifetch")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ApiClient:
    """HTTP client for JSON APIs.

    Example:
        >>> config = ApiClientConfig(
        ...     base_url="https://api.example.com/v1/",
        ...     cache=CachePolicy(enabled=True, ttl=300),
        ... )
        >>> async with ApiClient(config) as client:
        ...     foods = await client.get("foods", params={"q": "apple"})
        ...     print(foods.data)
    """

    def __init__(
        self,
        config: ApiClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        cache: CacheManager[Any] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize API client.

        Args:
            config: Client configuration
            http_client: httpx client to use (not closed by this client)
            cache: Response cache (defaults to an in-memory cache sized
                from config.cache)
            sleep: Awaitable used for backoff delays (defaults to asyncio.sleep)
        """
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._cache: CacheManager[Any] = cache or CacheManager(
            CacheOptions(ttl=config.cache.ttl, max_size=config.cache.max_size),
            name="api-client",
        )
        self._sleep = sleep or asyncio.sleep
        self._retry_config = RetryConfig(
            attempts=config.retry_attempts,
            delay_ms=config.retry_delay_ms,
        )

    @property
    def config(self) -> ApiClientConfig:
        return self._config

    @property
    def cache(self) -> CacheManager[Any]:
        return self._cache

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout),
                follow_redirects=True,
            )
        return self._client

    def _build_headers(self, extra_headers: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"nutrifetch/{_get_ua_version()}",
        }
        headers.update(self._config.headers)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def build_url(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        """Resolve an endpoint against the base URL and append query params.

        Resolution follows RFC 3986: an endpoint starting with "/" replaces
        the base path, and a base URL without a trailing "/" loses its last
        segment. None parameter values are skipped; sequences become
        repeated parameters.
        """
        url = httpx.URL(self._config.base_url).join(endpoint)

        if params:
            for key, value in params.items():
                if value is None:
                    continue
                if isinstance(value, (list, tuple)):
                    for item in value:
                        url = url.copy_add_param(key, _param_value(item))
                else:
                    url = url.copy_add_param(key, _param_value(value))

        return str(url)

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def make_request(
        self,
        method: str,
        url: str,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        """Send one request attempt.

        Args:
            method: HTTP method
            url: Fully-qualified URL
            data: JSON body (None sends no body)
            headers: Extra headers for this request

        Returns:
            ApiResponse for a 2xx status

        Raises:
            HttpStatusError: Non-2xx status
            RequestTimeoutError: No response within config.timeout
            NetworkError: Any other transport failure
        """
        client = self._get_client()

        try:
            response = await asyncio.wait_for(
                client.request(
                    method,
                    url,
                    json=data,
                    headers=self._build_headers(headers),
                ),
                timeout=self._config.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.debug("Request timed out", method=method, url=url, timeout=self._config.timeout)
            raise RequestTimeoutError(url=url, cause=e) from e
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Request failed", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e}", url=url, cause=e) from e

        body = self._parse_body(response)

        if not response.is_success:
            logger.debug("Request returned error status", method=method, url=url, status=response.status_code)
            raise HttpStatusError(
                response.status_code,
                response.reason_phrase,
                body,
                url=url,
            )

        return ApiResponse(
            data=body,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
        )

    async def execute_with_retry(
        self,
        request: Callable[[], Awaitable[ApiResponse]],
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """Run a request under this client's retry policy.

        Args:
            request: Zero-argument coroutine factory making one attempt
            retry: Per-call overrides of the client's retry defaults
        """
        config = self._retry_config.with_overrides(retry)
        return await execute_with_retry(request, config, sleep=self._sleep)

    async def get(
        self,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        cache: bool | None = None,
        cache_ttl: float | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """GET a resource, served from the response cache when possible.

        Args:
            endpoint: Path resolved against the base URL
            params: Query parameters
            headers: Extra headers
            cache: False bypasses the cache for this call
            cache_ttl: Lifetime in seconds for this response (defaults to
                the client policy TTL)
            retry: Retry overrides

        Returns:
            ApiResponse
        """
        url = self.build_url(endpoint, params)
        use_cache = self._config.cache.enabled and cache is not False
        cache_key = request_cache_key("GET", url)

        with log_context(method="GET", url=url):
            if use_cache:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    logger.debug("Response served from cache", cache=self._cache.name)
                    return ApiResponse.model_validate(cached)

            response = await self._send("GET", url, headers=headers, retry=retry)

            if use_cache and response.is_success:
                self._cache.set(
                    cache_key,
                    response.model_dump(),
                    cache_ttl if cache_ttl is not None else self._config.cache.ttl,
                )

        return response

    async def _send(
        self,
        method: str,
        url: str,
        data: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        with log_context(method=method, url=url):
            return await self.execute_with_retry(
                lambda: self.make_request(method, url, data, headers),
                retry,
            )

    async def post(
        self,
        endpoint: str,
        data: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """POST a JSON body."""
        url = self.build_url(endpoint)
        return await self._send("POST", url, data, headers=headers, retry=retry)

    async def put(
        self,
        endpoint: str,
        data: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """PUT a JSON body."""
        url = self.build_url(endpoint)
        return await self._send("PUT", url, data, headers=headers, retry=retry)

    async def patch(
        self,
        endpoint: str,
        data: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """PATCH with a JSON body."""
        url = self.build_url(endpoint)
        return await self._send("PATCH", url, data, headers=headers, retry=retry)

    async def delete(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        retry: RetryOverrides | None = None,
    ) -> ApiResponse:
        """DELETE a resource."""
        url = self.build_url(endpoint)
        return await self._send("DELETE", url, headers=headers, retry=retry)

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def create_api_client(base_url: str, **options: Any) -> ApiClient:
    """Create a client from keyword config options."""
    return ApiClient(ApiClientConfig(base_url=base_url, **options))


def create_nutrition_api_client(base_url: str, api_key: str | None = None) -> ApiClient:
    """Client for food and nutrient APIs: X-API-Key auth, 5 minute cache."""
    return create_api_client(
        base_url,
        headers={"X-API-Key": api_key} if api_key else {},
        cache=CachePolicy(enabled=True, ttl=300.0),
        retry_attempts=3,
        retry_delay_ms=1000,
    )


def create_economics_api_client(base_url: str, api_key: str | None = None) -> ApiClient:
    """Client for pricing and economics APIs: bearer auth, 10 minute cache."""
    return create_api_client(
        base_url,
        headers={"Authorization": f"Bearer {api_key}"} if api_key else {},
        cache=CachePolicy(enabled=True, ttl=600.0),
        retry_attempts=2,
        retry_delay_ms=2000,
    )
