"""Core value types of CacheVault."""

from .expiration import NEVER_EXPIRE, ExpirationRecord, current_millis, to_millis
from .statistics import CacheMetrics, CacheStatistics

__all__ = [
    "NEVER_EXPIRE",
    "CacheMetrics",
    "CacheStatistics",
    "ExpirationRecord",
    "current_millis",
    "to_millis",
]
