"""CacheVault services: the cache store, its codec and declaration scanning."""

from .codec import JsonCacheCodec, PersistedRecord
from .declarations import (
    Cacheable,
    ClassDeclarationSource,
    Declaration,
    DeclarationRegistry,
    DeclarationScanner,
    DeclarationSource,
    ScanResult,
)
from .store import CacheStore, FlushResult, LoadResult

__all__ = [
    "CacheStore",
    "Cacheable",
    "ClassDeclarationSource",
    "Declaration",
    "DeclarationRegistry",
    "DeclarationScanner",
    "DeclarationSource",
    "FlushResult",
    "JsonCacheCodec",
    "LoadResult",
    "PersistedRecord",
    "ScanResult",
]
