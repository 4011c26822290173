"""Update operations for the TTL store.

This module provides delete and evict, the operations that remove entries.
Eviction is driven by ExpiredKeys, an iterator over expired entries that
removes each key once the consumer asks for the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ttlvault.services.sqlite_store.environment import TxnMode
from ttlvault.services.sqlite_store.operations.base import BaseOperation
from ttlvault.services.sqlite_store.operations.index import remove_key
from ttlvault.services.sqlite_store.operations.query import KeyVisitor
from ttlvault.shared.constants import Cache, Tables
from ttlvault.shared.errors import (
    ErrorContext,
    EvictionError,
    LockContentionError,
    create_index_corruption_error,
)

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable

logger = logging.getLogger(__name__)


class ExpiredKeys:
    """Iterator over expired keys in ascending expiry order.

    A key is yielded before it is removed. Pulling the next key removes
    the previous one; stopping the iteration keeps it. The walk ends at
    the first fresh entry or once max_count keys were removed.

    Attributes:
        evicted: Number of keys removed so far
    """

    def __init__(
        self,
        kvp: KeyValueTable,
        ekp: ExpiryIndexTable,
        now: float,
        max_count: int = Cache.UNBOUNDED,
    ) -> None:
        self.evicted = 0
        self._kvp = kvp
        self._ekp = ekp
        self._now = now
        self._max_count = max_count
        self._walk = self._generate()

    def __iter__(self) -> ExpiredKeys:
        return self

    def __next__(self) -> str:
        return next(self._walk)

    def close(self) -> None:
        """Stop the walk without removing the key last yielded."""
        self._walk.close()

    def _generate(self) -> Generator[str, None, None]:
        with self._ekp.cursor() as cursor:
            row = cursor.first()
            while row is not None:
                if 0 <= self._max_count <= self.evicted:
                    return
                expiry, key = row
                if expiry > self._now:
                    return

                if self._ekp.get(key) != expiry:
                    raise create_index_corruption_error(
                        Tables.EXPIRY_KEY_PAIRS,
                        key,
                        operation="evict",
                        detail=f"reverse entry {expiry!r} has no matching forward entry",
                    )
                yield key

                self._kvp.delete(key)
                cursor.delete_current()
                self._ekp.delete(key)
                self.evicted += 1

                row = cursor.next()


class UpdateOperations(BaseOperation):
    """Update operations for cache removal."""

    def delete(self, key: str) -> bool:
        """Delete key and its index entries.

        Deleting a key that is not there is not an error.

        Args:
            key: Cache key

        Returns:
            True once the transaction committed

        Raises:
            LockContentionError: If another writer holds the lock
            StorageError: If the engine fails
        """

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> bool:
            return remove_key(key, kvp, ekp)

        existed = self._run(unit_of_work, TxnMode.TRY, "delete")
        if existed:
            self.statistics.record_delete()
        logger.debug("Cache delete: key=%s, existed=%s", key, existed)
        return True

    def evict(
        self,
        visit: KeyVisitor | None = None,
        max_count: int = Cache.UNBOUNDED,
    ) -> int:
        """Remove expired entries in ascending expiry order.

        The walk stops at the first fresh entry, after max_count
        evictions, or when visit returns a falsy value for a key; the
        entries evicted up to that point are committed.

        Args:
            visit: Called with each expired key before it is removed;
                return True to remove it and continue. None accepts all.
            max_count: Maximum number of entries to evict; negative
                means unbounded. This is an exact cap: a pass never
                removes max_count + 1 entries.

        Returns:
            Number of entries evicted

        Raises:
            LockContentionError: If another writer holds the lock
            EvictionError: If visit or the engine failed; carries the
                number of entries evicted before the failure, which were
                rolled back with the transaction
        """
        walks: list[ExpiredKeys] = []

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> int:
            expired = ExpiredKeys(kvp, ekp, self.clock(), max_count)
            walks.append(expired)
            try:
                for key in expired:
                    if visit is not None and not visit(key):
                        break
            finally:
                expired.close()
            return expired.evicted

        try:
            evicted = self._run(unit_of_work, TxnMode.TRY, "evict")
        except LockContentionError:
            raise
        except Exception as e:
            progress = walks[0].evicted if walks else 0
            msg = f"eviction stopped after {progress} entries: {e}"
            raise EvictionError(
                msg,
                progress,
                ErrorContext(operation="evict"),
                e,
            ) from e

        self._record_evictions(evicted)
        return evicted

    @contextmanager
    def iter_expired(
        self, max_count: int = Cache.UNBOUNDED
    ) -> Generator[ExpiredKeys, None, None]:
        """Context manager yielding an ExpiredKeys walk in one transaction.

        Removals commit when the block exits normally and roll back when
        it raises.

        Example:
            >>> with ops.iter_expired() as expired:
            ...     for key in expired:
            ...         if key.startswith("keep_"):
            ...             break

        Raises:
            LockContentionError: If another writer holds the lock
        """
        expired: ExpiredKeys | None = None
        try:
            with self.transactions.transaction(TxnMode.TRY) as (kvp, ekp):
                expired = ExpiredKeys(kvp, ekp, self.clock(), max_count)
                try:
                    yield expired
                finally:
                    expired.close()
        except LockContentionError:
            if expired is None:
                self.statistics.record_lock_contention()
            raise

        self._record_evictions(expired.evicted)

    def _record_evictions(self, evicted: int) -> None:
        self.statistics.record_evictions(evicted)
        if evicted:
            logger.info("Evicted %d expired cache entries", evicted)
