"""
Cache settings models and YAML loading.

A settings file describes the application's named caches:

    global:
      ttl: 300
      max_size: 500
    persistent:
      ttl: 3600
      prefix: "foods:"
      path: /var/cache/nutrifetch
    session:
      ttl: 1800

Missing profiles and fields keep their defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from nutrifetch.cache.backends import DEFAULT_PREFIX, StorageKind
from nutrifetch.cache.manager import CacheOptions
from nutrifetch.errors import ConfigError, ValidationError
from nutrifetch.telemetry import get_logger

logger = get_logger("nutrifetch.config")

# Environment variable naming the settings file
CONFIG_ENV_VAR = "NUTRIFETCH_CACHE_CONFIG"


class CacheProfile(BaseModel):
    """Settings for one named cache."""

    model_config = ConfigDict(extra="forbid")

    storage: StorageKind = Field(default=StorageKind.MEMORY, description="Backend kind")
    ttl: float = Field(default=300.0, ge=0, description="Default TTL in seconds")
    max_size: int = Field(default=1000, ge=1, description="Eviction threshold in keys")
    prefix: str = Field(default=DEFAULT_PREFIX, description="Key prefix for shared storage")
    path: str | None = Field(default=None, description="Directory for persistent storage")
    coalesce: bool = Field(default=False, description="Share concurrent get_or_set loads")

    @field_validator("storage", mode="before")
    @classmethod
    def _parse_storage(cls, value: Any) -> StorageKind:
        try:
            return StorageKind.parse(value)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    def to_options(self) -> CacheOptions:
        """Build cache manager options from this profile."""
        return CacheOptions(
            ttl=self.ttl,
            max_size=self.max_size,
            storage=self.storage,
            prefix=self.prefix,
            path=self.path,
            coalesce=self.coalesce,
        )


def _global_profile() -> CacheProfile:
    return CacheProfile(storage=StorageKind.MEMORY, max_size=500, ttl=300.0, prefix="global:")


def _persistent_profile() -> CacheProfile:
    return CacheProfile(storage=StorageKind.PERSISTENT, max_size=200, ttl=3600.0)


def _session_profile() -> CacheProfile:
    return CacheProfile(storage=StorageKind.SESSION, max_size=100, ttl=1800.0, prefix="session:")


class CacheSettings(BaseModel):
    """Settings for the application's three standard caches."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    global_: CacheProfile = Field(default_factory=_global_profile, alias="global")
    persistent: CacheProfile = Field(default_factory=_persistent_profile)
    session: CacheProfile = Field(default_factory=_session_profile)

    def profiles(self) -> dict[str, CacheProfile]:
        """Get every profile by name."""
        return {"global": self.global_, "persistent": self.persistent, "session": self.session}

    @model_validator(mode="after")
    def _check_partitions(self) -> CacheSettings:
        # Profiles on the same storage area must not see each other's keys
        claimed: list[tuple[str, tuple[StorageKind, str | None], str]] = []
        for name, profile in self.profiles().items():
            if profile.storage is StorageKind.MEMORY:
                continue
            location = str(Path(profile.path)) if profile.path else None
            area = (profile.storage, location if profile.storage is StorageKind.PERSISTENT else None)
            for other, other_area, other_prefix in claimed:
                if area == other_area and (
                    profile.prefix.startswith(other_prefix) or other_prefix.startswith(profile.prefix)
                ):
                    raise ValueError(
                        f"profiles {other!r} and {name!r} share {profile.storage.value} storage "
                        f"with overlapping prefixes {other_prefix!r} and {profile.prefix!r}"
                    )
            claimed.append((name, area, profile.prefix))
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheSettings:
        """Build settings, filling each profile's missing fields from its defaults."""
        defaults = {
            "global": _global_profile(),
            "persistent": _persistent_profile(),
            "session": _session_profile(),
        }
        merged: dict[str, Any] = {}
        for name, default in defaults.items():
            overrides = data.get(name) or {}
            if not isinstance(overrides, dict):
                raise ValueError(f"profile {name!r} must be a mapping")
            merged[name] = {**default.model_dump(), **overrides}
        unknown = set(data) - set(defaults)
        if unknown:
            raise ValueError(f"unknown profiles: {', '.join(sorted(unknown))}")
        return cls.model_validate(merged)


def load_cache_settings(path: str | Path | None = None) -> CacheSettings:
    """Load cache settings from a YAML file.

    Args:
        path: Settings file. Defaults to $NUTRIFETCH_CACHE_CONFIG; when
            neither is given the built-in defaults are returned.

    Returns:
        CacheSettings

    Raises:
        ConfigError: File is unreadable, not YAML, or fails validation
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR)
    if not path:
        return CacheSettings()

    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read cache settings: {e}", path=str(path)) from e

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in cache settings: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigError("Cache settings must be a mapping", path=str(path))

    try:
        settings = CacheSettings.from_dict(data)
    except (PydanticValidationError, ValueError) as e:
        raise ConfigError(f"Invalid cache settings: {e}", path=str(path)) from e

    logger.debug("Loaded cache settings", path=str(path))
    return settings
