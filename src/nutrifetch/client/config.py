"""
ApiClient configuration.

Configs are frozen: a client keeps the policy it was built with, and a new
client is needed to change it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import httpx

from nutrifetch.errors import ValidationError

# Environment overrides read by ApiClientConfig.from_env
_ENV_TIMEOUT = "NUTRIFETCH_HTTP_TIMEOUT_SECS"
_ENV_RETRY_ATTEMPTS = "NUTRIFETCH_RETRY_ATTEMPTS"
_ENV_RETRY_DELAY_MS = "NUTRIFETCH_RETRY_DELAY_MS"


@dataclass(frozen=True)
class CachePolicy:
    """Response caching policy for GET requests.

    Attributes:
        enabled: Whether GET responses are cached
        ttl: Default lifetime of a cached response in seconds
        max_size: Number of cached responses that triggers eviction
    """

    enabled: bool = False
    ttl: float = 300.0
    max_size: int = 1000

    def __post_init__(self) -> None:
        if self.ttl < 0:
            raise ValidationError("TTL must not be negative", field="cache.ttl", actual=self.ttl)
        if self.max_size < 1:
            raise ValidationError(
                "max_size must be at least 1", field="cache.max_size", actual=self.max_size
            )

    @classmethod
    def disabled(cls) -> CachePolicy:
        return cls(enabled=False)

    @classmethod
    def short_ttl(cls, ttl: float = 300.0) -> CachePolicy:
        """Create an enabled policy with a short TTL (5 minutes default)."""
        return cls(enabled=True, ttl=ttl)

    @classmethod
    def long_ttl(cls, ttl: float = 3600.0) -> CachePolicy:
        """Create an enabled policy with a long TTL (1 hour default)."""
        return cls(enabled=True, ttl=ttl)


@dataclass(frozen=True)
class ApiClientConfig:
    """ApiClient configuration.

    Attributes:
        base_url: Absolute URL endpoints are resolved against
        timeout: Total time allowed per request attempt, in seconds
        retry_attempts: Attempts per request, including the first
        retry_delay_ms: Base backoff delay in milliseconds
        headers: Default headers sent with every request
        cache: GET response caching policy
    """

    base_url: str
    timeout: float = 10.0
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    headers: Mapping[str, str] = field(default_factory=dict)
    cache: CachePolicy = field(default_factory=CachePolicy)

    def __post_init__(self) -> None:
        try:
            absolute = bool(self.base_url) and httpx.URL(self.base_url).is_absolute_url
        except httpx.InvalidURL:
            absolute = False
        if not absolute:
            raise ValidationError(
                "base_url must be an absolute URL",
                field="base_url",
                actual=self.base_url,
            )
        if self.timeout <= 0:
            raise ValidationError(
                "timeout must be positive", field="timeout", expected="> 0", actual=self.timeout
            )
        if self.retry_attempts < 1:
            raise ValidationError(
                "retry_attempts must be at least 1",
                field="retry_attempts",
                expected=">= 1",
                actual=self.retry_attempts,
            )
        if self.retry_delay_ms < 0:
            raise ValidationError(
                "retry_delay_ms must not be negative",
                field="retry_delay_ms",
                actual=self.retry_delay_ms,
            )
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def from_env(cls, base_url: str, **overrides: Any) -> ApiClientConfig:
        """Create a config, filling unset fields from the environment.

        Reads NUTRIFETCH_HTTP_TIMEOUT_SECS, NUTRIFETCH_RETRY_ATTEMPTS and
        NUTRIFETCH_RETRY_DELAY_MS. Unparseable values are ignored.

        Args:
            base_url: Base URL
            **overrides: Explicit field values (take precedence)
        """
        values: dict[str, Any] = {}
        env_fields = {
            "timeout": (_ENV_TIMEOUT, float),
            "retry_attempts": (_ENV_RETRY_ATTEMPTS, int),
            "retry_delay_ms": (_ENV_RETRY_DELAY_MS, int),
        }
        for name, (env_var, convert) in env_fields.items():
            if name in overrides:
                continue
            raw = os.getenv(env_var)
            if raw:
                with suppress(ValueError):
                    values[name] = convert(raw)

        values.update(overrides)
        return cls(base_url=base_url, **values)
