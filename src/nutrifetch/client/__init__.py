"""
Client layer - JSON API client with retry and response caching.
"""

from nutrifetch.client.config import ApiClientConfig, CachePolicy
from nutrifetch.client.core import (
    ApiClient,
    create_api_client,
    create_economics_api_client,
    create_nutrition_api_client,
)
from nutrifetch.client.response import ApiResponse

__all__ = [
    "ApiClient",
    "ApiClientConfig",
    "ApiResponse",
    "CachePolicy",
    "create_api_client",
    "create_economics_api_client",
    "create_nutrition_api_client",
]
