"""
Pytest configuration and shared fixtures for CacheVault tests.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from cachevault.config.settings import CacheSettings
from cachevault.services.store import CacheStore


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CACHEVAULT_* variables of the host shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("CACHEVAULT_"):
            monkeypatch.delenv(name)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to the temporary directory.
    """
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(temp_dir: Path, clock: FakeClock) -> CacheStore:
    """A store in a temporary directory driven by the fake clock."""
    return CacheStore(temp_dir, clock=clock)


@pytest.fixture
def strict_settings() -> CacheSettings:
    return CacheSettings(strict=True)
