"""Expiry index maintenance.

Every change to key_value_pairs goes through these two primitives so the
forward (key -> expiry) and reverse ((expiry, key)) entries of
expiry_key_pairs stay in lockstep: for each live key there is exactly one
forward entry and one matching reverse entry. Both must run inside an
active transaction; a failure aborts the whole transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable

logger = logging.getLogger(__name__)


def reindex(key: str, new_expiry: float, ekp: ExpiryIndexTable) -> None:
    """Point key at new_expiry in both directions of the index.

    The old reverse entry is removed before the new one is inserted; a
    reverse entry that is already gone is not an error.

    Args:
        key: Cache key
        new_expiry: Absolute expiry timestamp
        ekp: Expiry index handle
    """
    old_expiry = ekp.get(key)
    if old_expiry is not None and not ekp.delete_pair(old_expiry, key):
        logger.debug("Reverse entry (%s, %s) already absent", old_expiry, key)

    ekp.upsert(key, new_expiry)
    ekp.put(new_expiry, key)


def remove_key(key: str, kvp: KeyValueTable, ekp: ExpiryIndexTable) -> bool:
    """Delete key from the key-value table and both index directions.

    A key without index entries is removed without complaint, since the
    removal leaves the tables consistent either way.

    Args:
        key: Cache key
        kvp: Key-value table handle
        ekp: Expiry index handle

    Returns:
        True if the key was present in the key-value table
    """
    existed = kvp.delete(key)

    expiry = ekp.get(key)
    if expiry is not None:
        ekp.delete(key)
        ekp.delete_pair(expiry, key)

    return existed
