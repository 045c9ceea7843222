"""
CacheVault - file-backed expiring key/value cache

An in-process cache whose entries carry a time-to-live, persisted to a
single JSON file on flush and restored on load, with support for values
declared statically by the host application.
"""

__version__ = "0.1.0"

from .config import CacheConfig, CacheSettings, DeclarationPolicy, Settings, load_settings
from .core import NEVER_EXPIRE, CacheStatistics, ExpirationRecord
from .services import (
    Cacheable,
    CacheStore,
    ClassDeclarationSource,
    DeclarationRegistry,
    FlushResult,
    LoadResult,
)
from .shared.errors import (
    ApplicationError,
    CacheVaultError,
    DeclarationAccessError,
    DomainError,
    ErrorCode,
    InfrastructureError,
)
from .shared.logging import configure_logging, setup_structured_logger

__all__ = [
    "NEVER_EXPIRE",
    "ApplicationError",
    "CacheConfig",
    "CacheSettings",
    "CacheStatistics",
    "CacheStore",
    "CacheVaultError",
    "Cacheable",
    "ClassDeclarationSource",
    "DeclarationAccessError",
    "DeclarationPolicy",
    "DeclarationRegistry",
    "DomainError",
    "ErrorCode",
    "ExpirationRecord",
    "FlushResult",
    "InfrastructureError",
    "LoadResult",
    "Settings",
    "configure_logging",
    "load_settings",
    "setup_structured_logger",
]
