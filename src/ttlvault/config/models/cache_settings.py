"""Cache configuration model.

This module contains the cache configuration model for managing the
default time-to-live, database location and eviction behavior.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ttlvault.shared.constants import Cache, Storage


class CacheSettings(BaseModel):
    """Cache configuration.

    This class manages the default TTL, the directory and file name of the
    cache database, and eviction of expired entries.
    """

    default_ttl: int = Field(
        default=Cache.DEFAULT_TTL,
        gt=0,
        description="Default time-to-live in seconds",
    )
    path: str = Field(
        default=Storage.DEFAULT_PATHNAME,
        description="Directory holding the cache database",
    )
    db_filename: str = Field(
        default=Storage.DB_FILENAME,
        min_length=1,
        description="Cache database file name",
    )
    evict_on_open: bool = Field(
        default=False,
        description="Remove expired entries when the cache is opened",
    )
    evict_batch_size: int = Field(
        default=Cache.UNBOUNDED,
        description="Maximum entries removed per eviction (negative means unbounded)",
    )


__all__ = ["CacheSettings"]
