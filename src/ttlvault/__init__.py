"""
TTLVault - persistent key-value cache with per-entry time-to-live.

Values are stored in an SQLite key-value table; an expiry index kept in
the same transaction drives freshness checks on read and batch eviction.
"""

__version__ = "0.1.0"

from .core.statistics import CacheMetrics, StatisticsCollector
from .services.ttl_cache import TTLCache
from .services.ttl_store_db import SQLiteTTLStore
from .shared.errors import (
    CacheValidationError,
    EvictionError,
    IndexCorruptionError,
    LockContentionError,
    StorageClosedError,
    StorageError,
    TTLVaultError,
)

__all__ = [
    "CacheMetrics",
    "CacheValidationError",
    "EvictionError",
    "IndexCorruptionError",
    "LockContentionError",
    "SQLiteTTLStore",
    "StatisticsCollector",
    "StorageClosedError",
    "StorageError",
    "TTLCache",
    "TTLVaultError",
]
