"""CacheVault settings.

Environment-driven configuration for cache stores and logging. Variables
use the ``CACHEVAULT_`` prefix with ``__`` between nested sections, e.g.
``CACHEVAULT_CACHE__DIRECTORY=/var/cache/app``.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cachevault.shared.constants import Cache, Logging
from cachevault.shared.errors import ErrorCode, create_config_error

logger = logging.getLogger(__name__)


class DeclarationPolicy(str, Enum):
    """What happens when a declaration and a persisted entry share a key."""

    OVERWRITE = "overwrite"  # the declared value replaces the persisted one
    PRESERVE = "preserve"  # a live persisted value is kept


class CacheSettings(BaseModel):
    """Cache store configuration."""

    directory: Path = Field(
        default=Path(Cache.DEFAULT_DIRECTORY),
        description="Directory holding the cache and cache config files",
    )
    cache_file_name: str = Field(
        default=Cache.FILE_NAME,
        min_length=1,
        description="Name of the persisted cache file",
    )
    config_file_name: str = Field(
        default=Cache.CONFIG_FILE_NAME,
        min_length=1,
        description="Name of the read-only cache config file",
    )
    declaration_policy: DeclarationPolicy = Field(
        default=DeclarationPolicy.OVERWRITE,
        description="Priority between declared and persisted values on load",
    )
    strict: bool = Field(
        default=False,
        description="Raise load/flush errors instead of returning them",
    )
    atomic_writes: bool = Field(
        default=True,
        description="Write the cache file through a temp file and rename",
    )
    pretty_json: bool = Field(
        default=False,
        description="Indent the cache file for human readers",
    )
    default_ttl_ms: int = Field(
        default=Cache.NEVER_EXPIRE,
        description="TTL applied when cache_object is called without one",
    )

    @field_validator("default_ttl_ms")
    @classmethod
    def _check_ttl(cls, value: int) -> int:
        if value < 0 and value != Cache.NEVER_EXPIRE:
            msg = f"default_ttl_ms must be non-negative or {Cache.NEVER_EXPIRE}"
            raise ValueError(msg)
        return value


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default=Logging.DEFAULT_LEVEL, description="Logging level")
    file: str | None = Field(default=None, description="Optional JSON log file")
    use_rich_console: bool = Field(default=True, description="Use rich console output")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown logging level: {value}"
            raise ValueError(msg)
        return upper


class Settings(BaseSettings):
    """Top-level settings for CacheVault."""

    model_config = SettingsConfigDict(
        env_prefix="CACHEVAULT_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(**overrides: Any) -> Settings:
    """Build validated settings from the environment plus overrides.

    Args:
        **overrides: Section values, e.g. ``cache={"strict": True}``.

    Returns:
        Settings instance

    Raises:
        ApplicationError: If the resulting configuration is invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        logger.exception("Invalid CacheVault configuration")
        raise create_config_error(
            f"Invalid configuration: {e.error_count()} validation error(s)",
            code=ErrorCode.CONFIG_INVALID,
            operation="load_settings",
            original_error=e,
        ) from e


__all__ = [
    "CacheSettings",
    "DeclarationPolicy",
    "LoggingSettings",
    "Settings",
    "load_settings",
]
