"""
Cache statistics collection.

Counts hits, misses and evictions for a cache store so hosts can tell how
effective their cache is.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Container for cache metrics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    removals: int = 0
    expired_evictions: int = 0
    loads: int = 0
    flushes: int = 0

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups > 0 else 0.0


class CacheStatistics:
    """Aggregator for the operations of one cache store."""

    def __init__(self) -> None:
        """Initialize the statistics collector."""
        self.metrics = CacheMetrics()
        self.session_start = datetime.now(timezone.utc)

    def record_hit(self, key: str) -> None:
        self.metrics.hits += 1
        logger.debug("Cache hit for key '%s'", key)

    def record_miss(self, key: str) -> None:
        self.metrics.misses += 1
        logger.debug("Cache miss for key '%s'", key)

    def record_write(self, key: str) -> None:
        self.metrics.writes += 1

    def record_removal(self, key: str) -> None:
        self.metrics.removals += 1

    def record_expired(self, key: str) -> None:
        self.metrics.expired_evictions += 1
        logger.debug("Evicted expired key '%s'", key)

    def record_load(self) -> None:
        self.metrics.loads += 1

    def record_flush(self) -> None:
        self.metrics.flushes += 1

    def reset(self) -> None:
        """Reset all counters."""
        self.metrics = CacheMetrics()
        self.session_start = datetime.now(timezone.utc)

    def summary(self) -> dict[str, Any]:
        """Return the counters and hit ratio as a plain dict.

        Returns:
            Dictionary of metric name to value
        """
        data: dict[str, Any] = asdict(self.metrics)
        data["hit_ratio"] = self.metrics.hit_ratio
        data["session_start"] = self.session_start.isoformat()
        return data
