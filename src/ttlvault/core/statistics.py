"""
Statistics Collection Module

This module collects per-store cache statistics: hits, misses, lazy
expirations, writes and evictions.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Container for cache metrics."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    sets: int = 0
    deletes: int = 0
    renames: int = 0
    evictions: int = 0
    lock_contentions: int = 0
    hit_ratio: float = 0.0

    def __post_init__(self) -> None:
        """Calculate derived metrics after initialization."""
        lookups = self.hits + self.misses
        self.hit_ratio = self.hits / lookups if lookups > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatisticsCollector:
    """Thread-safe counters for one store instance."""

    def __init__(self) -> None:
        """Initialize the statistics collector."""
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "sets": 0,
            "deletes": 0,
            "renames": 0,
            "evictions": 0,
            "lock_contentions": 0,
        }
        self.session_start = datetime.now(timezone.utc)

    def _add(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def record_cache_hit(self) -> None:
        self._add("hits")

    def record_cache_miss(self, *, expired: bool = False) -> None:
        """Record a lookup that returned nothing.

        Args:
            expired: The entry existed but had expired and was removed
        """
        self._add("misses")
        if expired:
            self._add("expired")

    def record_set(self) -> None:
        self._add("sets")

    def record_delete(self) -> None:
        self._add("deletes")

    def record_rename(self) -> None:
        self._add("renames")

    def record_evictions(self, count: int) -> None:
        if count > 0:
            self._add("evictions", count)

    def record_lock_contention(self) -> None:
        self._add("lock_contentions")

    def snapshot(self) -> CacheMetrics:
        """Return a consistent copy of the current counters."""
        with self._lock:
            counters = dict(self._counters)
        return CacheMetrics(**counters)

    def reset(self) -> None:
        with self._lock:
            for name in self._counters:
                self._counters[name] = 0
        self.session_start = datetime.now(timezone.utc)
        logger.debug("Statistics reset")
