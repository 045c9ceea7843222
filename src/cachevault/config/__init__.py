"""CacheVault configuration."""

from .cache_config import CacheConfig
from .settings import (
    CacheSettings,
    DeclarationPolicy,
    LoggingSettings,
    Settings,
    load_settings,
)

__all__ = [
    "CacheConfig",
    "CacheSettings",
    "DeclarationPolicy",
    "LoggingSettings",
    "Settings",
    "load_settings",
]
