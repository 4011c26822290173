"""
Pytest configuration and shared fixtures for TTLVault tests.

This module provides a controllable clock and temporary stores that can
be used across all test modules in the project.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from ttlvault.services.ttl_cache import TTLCache
from ttlvault.services.ttl_store_db import SQLiteTTLStore

# Keep developer environment settings out of the tests
for _name in [name for name in os.environ if name.startswith("TTLVAULT_")]:
    del os.environ[_name]


class FakeClock:
    """Manually advanced clock returning absolute seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock for testing."""
    return FakeClock()


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Create an empty directory for the cache database."""
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory


@pytest.fixture
def store(store_dir: Path, clock: FakeClock) -> Generator[SQLiteTTLStore, None, None]:
    """Create a SQLiteTTLStore driven by the fake clock."""
    ttl_store = SQLiteTTLStore(store_dir, clock=clock)
    yield ttl_store
    ttl_store.close()


@pytest.fixture
def cache(store_dir: Path, clock: FakeClock) -> Generator[TTLCache, None, None]:
    """Create a TTLCache with a 60 second default TTL."""
    ttl_cache = TTLCache(60, store_dir, clock=clock)
    yield ttl_cache
    ttl_cache.close()
