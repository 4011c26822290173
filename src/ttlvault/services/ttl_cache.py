"""TTL cache facade.

TTLCache validates arguments, supplies the default time-to-live and
forwards every call to the SQLite TTL store. The store itself trusts its
inputs; all argument checks happen here.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from itertools import islice
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ttlvault.services.ttl_store_db import SQLiteTTLStore
from ttlvault.shared.constants import Cache, Storage
from ttlvault.shared.errors import ErrorCode, create_validation_error

if TYPE_CHECKING:
    from ttlvault.config.models import Settings
    from ttlvault.core.statistics import CacheMetrics
    from ttlvault.services.sqlite_store.operations.base import Clock
    from ttlvault.services.sqlite_store.operations.query import KeyVisitor
    from ttlvault.services.sqlite_store.operations.update import ExpiredKeys

logger = logging.getLogger(__name__)


def _validate_ttl(ttl: Any, field: str = "ttl") -> int:
    if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
        msg = f"{field} must be positive-integer"
        raise create_validation_error(msg, field, ErrorCode.INVALID_TTL)
    return ttl


def _validate_key(key: Any, field: str = "key") -> str:
    if not isinstance(key, str) or not Cache.KEY_PATTERN.match(key):
        msg = f'{field} must be string of "{Cache.KEY_PATTERN_TEXT}"'
        raise create_validation_error(msg, field, ErrorCode.INVALID_KEY)
    return key


def _encode_value(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode(Cache.VALUE_ENCODING)
    msg = f"value must be bytes or str, got {type(value).__name__}"
    raise create_validation_error(msg, "value", ErrorCode.INVALID_VALUE)


class TTLCache:
    """Persistent cache whose entries expire after a time-to-live.

    Attributes:
        ttl: Default time-to-live in seconds
        store: Backend store

    Example:
        >>> with TTLCache(60, "/var/cache/app") as cache:
        ...     cache.set("greeting", "hello")
        ...     cache.get("greeting")
        True
        b'hello'
    """

    def __init__(
        self,
        ttl: int = Cache.DEFAULT_TTL,
        pathname: str | os.PathLike[str] = Storage.DEFAULT_PATHNAME,
        *,
        db_filename: str = Storage.DB_FILENAME,
        busy_timeout_ms: int = Storage.BUSY_TIMEOUT_MS,
        journal_mode: str = Storage.JOURNAL_MODE,
        synchronous: str = Storage.SYNCHRONOUS,
        evict_on_open: bool = False,
        clock: Clock | None = None,
    ) -> None:
        """Open the cache.

        Args:
            ttl: Default time-to-live in seconds, a positive integer
            pathname: Existing directory for the database file
            db_filename: Database file name
            busy_timeout_ms: Lock wait for blocking transactions
            journal_mode: SQLite journal mode
            synchronous: SQLite synchronous level
            evict_on_open: Remove expired entries right after opening
            clock: Source of absolute time in seconds

        Raises:
            CacheValidationError: If ttl or pathname is invalid
            StorageError: If the store cannot be opened
        """
        self.ttl = _validate_ttl(ttl)
        if not isinstance(pathname, (str, os.PathLike)):
            msg = "pathname must be string"
            raise create_validation_error(msg, "pathname", ErrorCode.INVALID_PATH)

        self.store = SQLiteTTLStore(
            Path(pathname),
            db_filename=db_filename,
            busy_timeout_ms=busy_timeout_ms,
            journal_mode=journal_mode,
            synchronous=synchronous,
            clock=clock,
        )

        if evict_on_open:
            try:
                evicted = self.store.evict()
            except BaseException:
                self.store.close()
                raise
            if evicted > 0:
                logger.info("Evicted %d expired cache entries on open", evicted)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        pathname: str | os.PathLike[str] | None = None,
        clock: Clock | None = None,
    ) -> TTLCache:
        """Open a cache configured by settings.

        Args:
            settings: Loaded settings
            pathname: Overrides settings.cache.path
            clock: Source of absolute time in seconds
        """
        return cls(
            settings.cache.default_ttl,
            pathname if pathname is not None else settings.cache.path,
            db_filename=settings.cache.db_filename,
            busy_timeout_ms=settings.storage.busy_timeout_ms,
            journal_mode=settings.storage.journal_mode,
            synchronous=settings.storage.synchronous,
            evict_on_open=settings.cache.evict_on_open,
            clock=clock,
        )

    def set(self, key: str, value: bytes | str, ttl: int | None = None) -> bool:
        """Store value under key.

        Args:
            key: Cache key
            value: bytes, or str stored as UTF-8
            ttl: Time-to-live in seconds (default: the cache's ttl)
        """
        key = _validate_key(key)
        data = _encode_value(value)
        ttl = self.ttl if ttl is None else _validate_ttl(ttl)
        return self.store.set(key, data, ttl)

    def get(self, key: str, ttl: int | None = None) -> bytes | None:
        """Return the value of key, or None if it is missing or expired.

        Args:
            key: Cache key
            ttl: If given, extend the entry's lifetime to ttl seconds
        """
        key = _validate_key(key)
        if ttl is not None:
            ttl = _validate_ttl(ttl)
        return self.store.get(key, ttl)

    def delete(self, key: str) -> bool:
        return self.store.delete(_validate_key(key))

    def rename(self, old_key: str, new_key: str) -> bool:
        old_key = _validate_key(old_key, "oldkey")
        new_key = _validate_key(new_key, "newkey")
        return self.store.rename(old_key, new_key)

    def keys(self, visit: KeyVisitor) -> int:
        if not callable(visit):
            msg = "visit must be callable"
            raise create_validation_error(msg, "visit")
        return self.store.keys(visit)

    def list_keys(self, limit: int | None = None) -> list[str]:
        """Return fresh keys in key order, at most limit of them."""
        if limit is not None and limit <= 0:
            return []
        with self.store.iter_keys() as keys:
            return list(islice(keys, limit))

    def evict(
        self,
        visit: KeyVisitor | None = None,
        max_count: int = Cache.UNBOUNDED,
    ) -> int:
        if visit is not None and not callable(visit):
            msg = "visit must be callable"
            raise create_validation_error(msg, "visit")
        if isinstance(max_count, bool) or not isinstance(max_count, int):
            msg = "max_count must be integer"
            raise create_validation_error(msg, "max_count")
        return self.store.evict(visit, max_count)

    @contextmanager
    def iter_keys(self) -> Generator[Iterator[str], None, None]:
        """Context manager yielding an iterator over fresh keys.

        Example:
            >>> with cache.iter_keys() as keys:
            ...     sessions = [k for k in keys if k.startswith("session_")]
        """
        with self.store.iter_keys() as keys:
            yield keys

    @contextmanager
    def iter_expired(
        self, max_count: int = Cache.UNBOUNDED
    ) -> Generator[ExpiredKeys, None, None]:
        """Context manager yielding expired keys, oldest first.

        Each key is removed once the loop moves past it; breaking out
        keeps the current key. Removals commit when the block exits and
        roll back if it raises.
        """
        if isinstance(max_count, bool) or not isinstance(max_count, int):
            msg = "max_count must be integer"
            raise create_validation_error(msg, "max_count")
        with self.store.iter_expired(max_count) as expired:
            yield expired

    def stats(self) -> CacheMetrics:
        return self.store.stats()

    def validate_schema(self) -> bool:
        return self.store.validate_schema()

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> TTLCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
