"""Table handles bound to a storage transaction.

Each handle exposes the narrow get/upsert/insert/delete/cursor interface
the cache operations need. Handles and their cursors are valid only while
the owning transaction is active; engine failures are converted into
StorageError naming the table and the action.
"""

from __future__ import annotations

import functools
import logging
import sqlite3
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from ttlvault.shared.constants import Tables
from ttlvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    KeyExistsError,
    create_lock_contention_error,
    create_storage_error,
)

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.environment import Transaction

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def is_lock_error(error: sqlite3.Error) -> bool:
    """Return True if the engine refused a lock rather than failing."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


def _engine_call(action: str) -> Callable[[F], F]:
    """Check the transaction is live and translate engine errors."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: _TableBound, *args: Any, **kwargs: Any) -> Any:
            self.txn.ensure_active(action, self.name)
            try:
                return func(self, *args, **kwargs)
            except sqlite3.Error as e:
                if is_lock_error(e):
                    raise create_lock_contention_error(action, e) from e
                msg = f"failed to {action} in table {self.name!r}: {e}"
                raise create_storage_error(
                    msg,
                    operation=action,
                    table=self.name,
                    original_error=e,
                ) from e

        return wrapper  # type: ignore[return-value]

    return decorator


class _TableBound:
    """Shared state of handles and cursors bound to a transaction."""

    def __init__(self, txn: Transaction, name: str) -> None:
        self.txn = txn
        self.name = name

    @property
    def conn(self) -> sqlite3.Connection:
        return self.txn.conn


class _KeysetCursor(_TableBound):
    """Ordered cursor that re-queries from the last visited position.

    Subclasses provide the ordered SELECT statements and the row delete.
    Rows deleted through delete_current() do not disturb iteration.
    """

    _first_sql: str
    _next_sql: str

    def __init__(self, txn: Transaction, name: str) -> None:
        super().__init__(txn, name)
        self._current: tuple[Any, ...] | None = None
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise create_storage_error(
                f"cursor on table {self.name!r} is closed",
                operation="cursor",
                table=self.name,
                code=ErrorCode.CURSOR_CLOSED,
            )

    @_engine_call("cursor_first")
    def first(self) -> tuple[Any, ...] | None:
        """Position on the first row and return it, or None if empty."""
        self._ensure_open()
        self._current = self.conn.execute(self._first_sql).fetchone()
        return self._current

    @_engine_call("cursor_next")
    def next(self) -> tuple[Any, ...] | None:
        """Advance past the current row and return the next one."""
        self._ensure_open()
        if self._current is None:
            return None
        row = self.conn.execute(self._next_sql, self._bound(self._current)).fetchone()
        self._current = row
        return row

    @_engine_call("cursor_delete")
    def delete_current(self) -> bool:
        """Delete the row the cursor is positioned on."""
        self._ensure_open()
        if self._current is None:
            return False
        return self._delete_row(self._current)

    def close(self) -> None:
        self._closed = True
        self._current = None

    def __enter__(self) -> _KeysetCursor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _bound(self, row: tuple[Any, ...]) -> tuple[Any, ...]:
        raise NotImplementedError

    def _delete_row(self, row: tuple[Any, ...]) -> bool:
        raise NotImplementedError


class KeyValueCursor(_KeysetCursor):
    """Cursor over key_value_pairs in key order. Rows are (key, value)."""

    _first_sql = (
        f"SELECT key, value FROM {Tables.KEY_VALUE_PAIRS} ORDER BY key LIMIT 1"  # noqa: S608
    )
    _next_sql = (
        f"SELECT key, value FROM {Tables.KEY_VALUE_PAIRS} "  # noqa: S608
        "WHERE key > ? ORDER BY key LIMIT 1"
    )

    def _bound(self, row: tuple[Any, ...]) -> tuple[Any, ...]:
        return (row[0],)

    def _delete_row(self, row: tuple[Any, ...]) -> bool:
        cursor = self.conn.execute(
            f"DELETE FROM {Tables.KEY_VALUE_PAIRS} WHERE key = ?",  # noqa: S608
            (row[0],),
        )
        return cursor.rowcount > 0


class ExpiryCursor(_KeysetCursor):
    """Cursor over the reverse expiry index in ascending expiry order.

    Rows are (expiry, key); keys sharing an expiry come in key order.
    """

    _first_sql = (
        f"SELECT expiry, key FROM {Tables.EXPIRY_REVERSE} "  # noqa: S608
        "ORDER BY expiry, key LIMIT 1"
    )
    _next_sql = (
        f"SELECT expiry, key FROM {Tables.EXPIRY_REVERSE} "  # noqa: S608
        "WHERE expiry > ? OR (expiry = ? AND key > ?) "
        "ORDER BY expiry, key LIMIT 1"
    )

    def _bound(self, row: tuple[Any, ...]) -> tuple[Any, ...]:
        expiry, key = row
        return (expiry, expiry, key)

    def _delete_row(self, row: tuple[Any, ...]) -> bool:
        cursor = self.conn.execute(
            f"DELETE FROM {Tables.EXPIRY_REVERSE} WHERE expiry = ? AND key = ?",  # noqa: S608
            row,
        )
        return cursor.rowcount > 0


class KeyValueTable(_TableBound):
    """Handle to the key_value_pairs table."""

    @_engine_call("get")
    def get(self, key: str) -> bytes | None:
        row = self.conn.execute(
            f"SELECT value FROM {Tables.KEY_VALUE_PAIRS} WHERE key = ?",  # noqa: S608
            (key,),
        ).fetchone()
        return bytes(row[0]) if row is not None else None

    @_engine_call("upsert")
    def upsert(self, key: str, value: bytes) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {Tables.KEY_VALUE_PAIRS} (key, value) VALUES (?, ?)",  # noqa: S608
            (key, value),
        )

    def insert(self, key: str, value: bytes) -> None:
        """Insert a new pair.

        Raises:
            KeyExistsError: If the key is already present
        """
        self.txn.ensure_active("insert", self.name)
        try:
            self.conn.execute(
                f"INSERT INTO {Tables.KEY_VALUE_PAIRS} (key, value) VALUES (?, ?)",  # noqa: S608
                (key, value),
            )
        except sqlite3.IntegrityError as e:
            raise KeyExistsError(
                ErrorCode.KEY_EXISTS,
                f"key {key!r} already exists in table {self.name!r}",
                ErrorContext(operation="insert", additional_data={"table": self.name}),
                e,
            ) from e
        except sqlite3.Error as e:
            if is_lock_error(e):
                raise create_lock_contention_error("insert", e) from e
            msg = f"failed to insert in table {self.name!r}: {e}"
            raise create_storage_error(
                msg, operation="insert", table=self.name, original_error=e
            ) from e

    @_engine_call("delete")
    def delete(self, key: str) -> bool:
        cursor = self.conn.execute(
            f"DELETE FROM {Tables.KEY_VALUE_PAIRS} WHERE key = ?",  # noqa: S608
            (key,),
        )
        return cursor.rowcount > 0

    @_engine_call("cursor_open")
    def cursor(self) -> KeyValueCursor:
        return KeyValueCursor(self.txn, self.name)


class ExpiryIndexTable(_TableBound):
    """Handle to the dual-indexed expiry_key_pairs table.

    The forward map (key -> expiry) holds one entry per live key; the
    reverse multi-map ((expiry, key) pairs) is sorted by expiry. The two
    are kept in lockstep by the index maintainer, not by this handle.
    """

    @_engine_call("get")
    def get(self, key: str) -> float | None:
        """Look up the forward entry of key."""
        row = self.conn.execute(
            f"SELECT expiry FROM {Tables.EXPIRY_FORWARD} WHERE key = ?",  # noqa: S608
            (key,),
        ).fetchone()
        return row[0] if row is not None else None

    @_engine_call("upsert")
    def upsert(self, key: str, expiry: float) -> None:
        """Set the forward entry of key."""
        self.conn.execute(
            f"INSERT OR REPLACE INTO {Tables.EXPIRY_FORWARD} (key, expiry) VALUES (?, ?)",  # noqa: S608
            (key, expiry),
        )

    @_engine_call("delete")
    def delete(self, key: str) -> bool:
        """Delete the forward entry of key."""
        cursor = self.conn.execute(
            f"DELETE FROM {Tables.EXPIRY_FORWARD} WHERE key = ?",  # noqa: S608
            (key,),
        )
        return cursor.rowcount > 0

    @_engine_call("put")
    def put(self, expiry: float, key: str) -> None:
        """Add the reverse entry (expiry, key)."""
        self.conn.execute(
            f"INSERT OR IGNORE INTO {Tables.EXPIRY_REVERSE} (expiry, key) VALUES (?, ?)",  # noqa: S608
            (expiry, key),
        )

    @_engine_call("delete_pair")
    def delete_pair(self, expiry: float, key: str) -> bool:
        """Delete the reverse entry (expiry, key); False if it was absent."""
        cursor = self.conn.execute(
            f"DELETE FROM {Tables.EXPIRY_REVERSE} WHERE expiry = ? AND key = ?",  # noqa: S608
            (expiry, key),
        )
        return cursor.rowcount > 0

    @_engine_call("cursor_open")
    def cursor(self) -> ExpiryCursor:
        """Open a cursor over the reverse entries in ascending expiry order."""
        return ExpiryCursor(self.txn, self.name)
