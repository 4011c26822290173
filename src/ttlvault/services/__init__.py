"""TTLVault services: the SQLite TTL store and the cache facade."""

from ttlvault.services.ttl_cache import TTLCache
from ttlvault.services.ttl_store_db import SQLiteTTLStore

__all__ = ["SQLiteTTLStore", "TTLCache"]
