"""
Cache key generation utilities.

Provides deterministic cache keys for HTTP requests.
"""

from __future__ import annotations

from urllib.parse import urlencode

import httpx

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str | httpx.URL) -> str:
    """Normalize a URL so equivalent requests share a cache key.

    Lower-cases scheme and host, drops default ports and fragments, and
    sorts query parameters (repeated keys keep their relative order).
    Credentials in the URL are kept, so each user gets its own entry.

    Example:
        >>> normalize_url("HTTPS://Api.Example.com:443/foods?b=2&a=1#top")
        'https://api.example.com/foods?a=1&b=2'
    """
    parsed = httpx.URL(str(url))

    scheme = parsed.scheme.lower()
    host = parsed.host.lower()
    if ":" in host:
        host = f"[{host}]"

    port = parsed.port
    if port is not None and _DEFAULT_PORTS.get(scheme) == port:
        port = None
    netloc = host if port is None else f"{host}:{port}"
    userinfo = parsed.userinfo.decode("ascii")
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    path = parsed.raw_path.split(b"?", 1)[0].decode("ascii") or "/"

    normalized = f"{scheme}://{netloc}{path}"
    params = sorted(parsed.params.multi_items(), key=lambda item: item[0])
    if params:
        normalized += "?" + urlencode(params)
    return normalized


def request_cache_key(method: str, url: str | httpx.URL) -> str:
    """Build the cache key for a request.

    Args:
        method: HTTP method
        url: Fully-qualified request URL

    Returns:
        Key of the form ``"GET:https://host/path?a=1"``
    """
    return f"{method.upper()}:{normalize_url(url)}"
