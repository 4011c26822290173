"""SQLite TTL store backend.

This module composes the storage environment, the transaction manager and
the modular operations into the backend that the cache facade drives.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from ttlvault.core.statistics import CacheMetrics, StatisticsCollector
from ttlvault.services.sqlite_store.environment import StorageEnvironment, TxnMode
from ttlvault.services.sqlite_store.operations.insert import InsertOperations
from ttlvault.services.sqlite_store.operations.query import QueryOperations
from ttlvault.services.sqlite_store.operations.update import UpdateOperations
from ttlvault.services.sqlite_store.schema.manager import SchemaManager
from ttlvault.services.sqlite_store.transaction.manager import TransactionManager
from ttlvault.shared.constants import Cache, Storage
from ttlvault.shared.errors import create_storage_error

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.operations.base import Clock
    from ttlvault.services.sqlite_store.operations.query import KeyVisitor
    from ttlvault.services.sqlite_store.operations.update import ExpiredKeys

logger = logging.getLogger(__name__)


class SQLiteTTLStore:
    """SQLite-based key-value store with per-entry expiry.

    Values live in the key_value_pairs table; expiry_key_pairs indexes
    them by key and by expiry. Every operation is one transaction over
    both tables. Writers use non-blocking transactions and raise
    LockContentionError instead of waiting.

    Attributes:
        environment: Storage environment owning both tables
        statistics: Statistics collector for this store

    Example:
        >>> store = SQLiteTTLStore("/var/cache/app")
        >>> store.set("session_1", b"payload", 60)
        True
        >>> store.get("session_1")
        b'payload'
        >>> store.close()
    """

    def __init__(
        self,
        pathname: Path | str = Storage.DEFAULT_PATHNAME,
        *,
        db_filename: str = Storage.DB_FILENAME,
        busy_timeout_ms: int = Storage.BUSY_TIMEOUT_MS,
        journal_mode: str = Storage.JOURNAL_MODE,
        synchronous: str = Storage.SYNCHRONOUS,
        clock: Clock | None = None,
        statistics: StatisticsCollector | None = None,
    ) -> None:
        """Open the store at pathname.

        Args:
            pathname: Existing directory for the database file
            db_filename: Database file name
            busy_timeout_ms: Lock wait for blocking transactions
            journal_mode: SQLite journal mode
            synchronous: SQLite synchronous level
            clock: Source of absolute time in seconds (default time.time)
            statistics: Optional statistics collector

        Raises:
            StorageError: If the environment cannot be opened
        """
        self.environment = StorageEnvironment(
            pathname,
            db_filename=db_filename,
            busy_timeout_ms=busy_timeout_ms,
            journal_mode=journal_mode,
            synchronous=synchronous,
        )
        self.statistics = statistics or StatisticsCollector()
        self.clock: Clock = clock or time.time

        transactions = TransactionManager(self.environment)
        self._query_ops = QueryOperations(transactions, self.statistics, self.clock)
        self._insert_ops = InsertOperations(transactions, self.statistics, self.clock)
        self._update_ops = UpdateOperations(transactions, self.statistics, self.clock)

    @property
    def db_path(self) -> Path:
        return self.environment.db_path

    def set(self, key: str, value: bytes, ttl: float) -> bool:
        """Store value under key for ttl seconds."""
        return self._insert_ops.set(key, value, ttl)

    def get(self, key: str, ttl: float | None = None) -> bytes | None:
        """Return the fresh value of key, optionally extending its lifetime."""
        return self._query_ops.get(key, ttl)

    def delete(self, key: str) -> bool:
        """Delete key; absent keys are not an error."""
        return self._update_ops.delete(key)

    def rename(self, old_key: str, new_key: str) -> bool:
        """Move old_key's value and expiry to new_key."""
        return self._insert_ops.rename(old_key, new_key)

    def keys(self, visit: KeyVisitor) -> int:
        """Visit fresh keys in key order until visit returns False."""
        return self._query_ops.keys(visit)

    def evict(
        self,
        visit: KeyVisitor | None = None,
        max_count: int = Cache.UNBOUNDED,
    ) -> int:
        """Remove expired entries in ascending expiry order."""
        return self._update_ops.evict(visit, max_count)

    @contextmanager
    def iter_keys(self) -> Generator[Iterator[str], None, None]:
        """Iterate fresh keys in key order inside one read-only transaction."""
        with self._query_ops.iter_keys() as keys:
            yield keys

    @contextmanager
    def iter_expired(
        self, max_count: int = Cache.UNBOUNDED
    ) -> Generator[ExpiredKeys, None, None]:
        """Iterate expired keys, removing each one the caller moves past."""
        with self._update_ops.iter_expired(max_count) as expired:
            yield expired

    def validate_schema(self) -> bool:
        """Check that the database carries every declared table."""
        txn = self.environment.begin(TxnMode.READ_ONLY)
        try:
            return SchemaManager(txn.conn).validate_schema()
        except sqlite3.Error as e:
            msg = f"failed to validate schema: {e}"
            raise create_storage_error(
                msg, operation="validate_schema", original_error=e
            ) from e
        finally:
            txn.abort()

    def stats(self) -> CacheMetrics:
        return self.statistics.snapshot()

    def close(self) -> None:
        """Close the storage environment."""
        self.environment.close()
