"""Tests for cache statistics collection."""

from __future__ import annotations

from cachevault.core.statistics import CacheMetrics, CacheStatistics


def test_hit_ratio_without_lookups():
    assert CacheMetrics().hit_ratio == 0.0


def test_counters_and_summary():
    stats = CacheStatistics()
    stats.record_hit("a")
    stats.record_hit("a")
    stats.record_miss("b")
    stats.record_write("a")
    stats.record_expired("c")
    stats.record_removal("a")
    stats.record_load()
    stats.record_flush()

    summary = stats.summary()

    assert summary["hits"] == 2
    assert summary["misses"] == 1
    assert summary["writes"] == 1
    assert summary["expired_evictions"] == 1
    assert summary["removals"] == 1
    assert summary["loads"] == 1
    assert summary["flushes"] == 1
    assert summary["hit_ratio"] == 2 / 3
    assert "session_start" in summary


def test_reset():
    stats = CacheStatistics()
    stats.record_hit("a")

    stats.reset()

    assert stats.metrics == CacheMetrics()
