"""Insert operations for the TTL store.

This module provides set and rename, the operations that create entries.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ttlvault.services.sqlite_store.environment import TxnMode
from ttlvault.services.sqlite_store.operations.base import BaseOperation
from ttlvault.services.sqlite_store.operations.index import reindex, remove_key
from ttlvault.shared.constants import Tables
from ttlvault.shared.errors import KeyExistsError, create_index_corruption_error

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable

logger = logging.getLogger(__name__)


class InsertOperations(BaseOperation):
    """Insert operations for cache storage."""

    def set(self, key: str, value: bytes, ttl: float) -> bool:
        """Store value under key, expiring ttl seconds from now.

        Args:
            key: Cache key
            value: Value bytes
            ttl: Time-to-live in seconds

        Returns:
            True once the entry is committed

        Raises:
            LockContentionError: If another writer holds the lock
            StorageError: If the engine fails
        """
        new_expiry = self.clock() + ttl

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> bool:
            kvp.upsert(key, value)
            reindex(key, new_expiry, ekp)
            return True

        result = self._run(unit_of_work, TxnMode.TRY, "set")
        self.statistics.record_set()
        logger.debug("Cache set: key=%s, size=%d bytes, ttl=%ss", key, len(value), ttl)
        return result

    def rename(self, old_key: str, new_key: str) -> bool:
        """Move the value and expiry of old_key to new_key.

        Args:
            old_key: Existing key
            new_key: Key that must not exist yet

        Returns:
            True if renamed; False if old_key is missing or expired (an
            expired old_key is removed) or new_key already exists

        Raises:
            IndexCorruptionError: If old_key has no expiry index entry
            LockContentionError: If another writer holds the lock
            StorageError: If the engine fails
        """

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> bool:
            value = kvp.get(old_key)
            if value is None:
                return False

            expiry = ekp.get(old_key)
            if expiry is None:
                raise create_index_corruption_error(
                    Tables.EXPIRY_KEY_PAIRS, old_key, operation="rename"
                )
            if expiry <= self.clock():
                remove_key(old_key, kvp, ekp)
                logger.debug("Rename source expired: key=%s", old_key)
                return False

            try:
                kvp.insert(new_key, value)
            except KeyExistsError:
                logger.debug("Rename target exists: key=%s", new_key)
                return False

            ekp.put(expiry, new_key)
            ekp.upsert(new_key, expiry)
            remove_key(old_key, kvp, ekp)
            return True

        renamed = self._run(unit_of_work, TxnMode.TRY, "rename")
        if renamed:
            self.statistics.record_rename()
            logger.debug("Cache renamed: %s -> %s", old_key, new_key)
        return renamed
