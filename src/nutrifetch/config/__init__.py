"""
Configuration module for nutrifetch.

Provides cache settings profiles loaded from YAML.
"""

from nutrifetch.config.settings import (
    CONFIG_ENV_VAR,
    CacheProfile,
    CacheSettings,
    load_cache_settings,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "CacheProfile",
    "CacheSettings",
    "load_cache_settings",
]
