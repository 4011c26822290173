"""Query operations for the TTL store.

This module provides get, which validates freshness against the expiry
index on every read, and keys, a read-only walk over fresh keys that is
available both as a visitor call and as an iterator.
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable

from ttlvault.services.sqlite_store.environment import TxnMode
from ttlvault.services.sqlite_store.operations.base import BaseOperation
from ttlvault.services.sqlite_store.operations.index import reindex, remove_key
from ttlvault.shared.constants import Tables
from ttlvault.shared.errors import create_index_corruption_error

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable

logger = logging.getLogger(__name__)

KeyVisitor = Callable[[str], bool]


def fresh_keys(
    kvp: KeyValueTable, ekp: ExpiryIndexTable, now: float
) -> Generator[str, None, None]:
    """Yield keys whose expiry is after now, in key order."""
    with kvp.cursor() as cursor:
        row = cursor.first()
        while row is not None:
            key = row[0]
            expiry = ekp.get(key)
            if expiry is None:
                raise create_index_corruption_error(
                    Tables.EXPIRY_KEY_PAIRS, key, operation="keys"
                )
            if expiry > now:
                yield key
            row = cursor.next()


class QueryOperations(BaseOperation):
    """Query operations for cache retrieval."""

    def get(self, key: str, ttl: float | None = None) -> bytes | None:
        """Retrieve the value of key if it has not expired.

        An expired entry is deleted as a side effect and reported as a
        miss.

        Args:
            key: Cache key
            ttl: If given, extend a fresh entry to expire ttl seconds
                from now

        Returns:
            Cached value, or None on a miss

        Raises:
            IndexCorruptionError: If key has no expiry index entry
            LockContentionError: If another writer holds the lock
            StorageError: If the engine fails
        """
        outcome: dict[str, bool] = {"expired": False}

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> bytes | None:
            value = kvp.get(key)
            if value is None:
                return None

            expiry = ekp.get(key)
            if expiry is None:
                raise create_index_corruption_error(
                    Tables.EXPIRY_KEY_PAIRS, key, operation="get"
                )

            now = self.clock()
            if expiry > now:
                if ttl is not None:
                    reindex(key, now + ttl, ekp)
                return value

            remove_key(key, kvp, ekp)
            outcome["expired"] = True
            return None

        value = self._run(unit_of_work, TxnMode.TRY, "get")
        if value is None:
            self.statistics.record_cache_miss(expired=outcome["expired"])
            if outcome["expired"]:
                logger.debug("Cache entry expired for key: %s", key)
        else:
            self.statistics.record_cache_hit()
            logger.debug("Cache hit: key=%s", key)
        return value

    def keys(self, visit: KeyVisitor) -> int:
        """Pass each fresh key, in key order, to visit.

        The walk is read-only: expired entries are skipped, not removed.
        It stops when visit returns a falsy value or the keys run out.

        Args:
            visit: Callable receiving a key; return True to continue

        Returns:
            Number of keys passed to visit

        Raises:
            IndexCorruptionError: If a key has no expiry index entry
            StorageError: If the engine fails
            Exception: Whatever visit raised, after the transaction ended
        """

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> int:
            visited = 0
            walk = fresh_keys(kvp, ekp, self.clock())
            try:
                for key in walk:
                    visited += 1
                    if not visit(key):
                        break
            finally:
                walk.close()
            return visited

        return self._run(unit_of_work, TxnMode.READ_ONLY, "keys")

    @contextmanager
    def iter_keys(self) -> Generator[Iterator[str], None, None]:
        """Context manager yielding an iterator over fresh keys.

        The iterator reads from one read-only transaction that stays open
        until the block exits; stop early by leaving the loop.

        Example:
            >>> with ops.iter_keys() as keys:
            ...     first = next(keys, None)
        """
        with self.transactions.transaction(TxnMode.READ_ONLY) as (kvp, ekp):
            walk = fresh_keys(kvp, ekp, self.clock())
            try:
                yield walk
            finally:
                walk.close()
