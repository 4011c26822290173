"""SQLite storage environment.

This module owns the on-disk environment of the cache: it opens the
database file, configures the engine, declares both tables and hands out
transactions. Nothing else in the package opens an engine connection.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import weakref
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ttlvault.services.sqlite_store.schema.manager import SchemaManager
from ttlvault.services.sqlite_store.tables import (
    ExpiryIndexTable,
    KeyValueTable,
    is_lock_error,
)
from ttlvault.shared.constants import Storage, Tables
from ttlvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    StorageClosedError,
    StorageError,
    create_lock_contention_error,
    create_storage_error,
)
from ttlvault.shared.logging import log_operation_error, log_operation_success

if TYPE_CHECKING:
    from typing import Union

    TableHandle = Union[KeyValueTable, ExpiryIndexTable]

logger = logging.getLogger(__name__)


class _ThreadConnection:
    """Holds one thread's connection in thread-local storage."""

    __slots__ = ("conn", "__weakref__")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn


def _release_connection(
    lock: threading.Lock,
    connections: list[sqlite3.Connection],
    conn: sqlite3.Connection,
) -> None:
    """Close conn once its thread is gone, unless close() already did."""
    with lock:
        try:
            connections.remove(conn)
        except ValueError:
            return
    try:
        conn.close()
    except sqlite3.Error:
        logger.warning("Failed to close connection", exc_info=True)


class TxnMode(str, Enum):
    """Transaction acquisition modes."""

    NORMAL = "normal"
    READ_ONLY = "read_only"
    TRY = "try"


class Transaction:
    """A single engine transaction bound to one connection.

    Table handles opened from a transaction are valid only while it is
    active; commit() and abort() end it.
    """

    def __init__(self, conn: sqlite3.Connection, mode: TxnMode) -> None:
        self.conn = conn
        self.mode = mode
        self.active = True

    @property
    def readonly(self) -> bool:
        return self.mode is TxnMode.READ_ONLY

    def ensure_active(self, operation: str, table: str | None = None) -> None:
        """Raise StorageError if the transaction already ended."""
        if not self.active:
            raise create_storage_error(
                f"{operation}: transaction is no longer active",
                operation=operation,
                table=table,
                code=ErrorCode.TRANSACTION_INACTIVE,
            )

    def open_table(self, name: str) -> TableHandle:
        """Open a handle to a declared table, scoped to this transaction."""
        self.ensure_active("open_table", name)
        if name == Tables.KEY_VALUE_PAIRS:
            return KeyValueTable(self, name)
        if name == Tables.EXPIRY_KEY_PAIRS:
            return ExpiryIndexTable(self, name)
        msg = f"failed to open table {name!r}: table is not declared"
        raise create_storage_error(msg, operation="open_table", table=name)

    def commit(self) -> None:
        """Commit the transaction.

        Raises:
            StorageError: If the engine rejects the commit; the
                transaction is rolled back in that case.
        """
        self.ensure_active("commit")
        try:
            self.conn.execute("COMMIT")
        except sqlite3.Error as e:
            self.abort()
            if is_lock_error(e):
                raise create_lock_contention_error("commit", e) from e
            msg = f"failed to commit: {e}"
            raise create_storage_error(
                msg,
                operation="commit",
                code=ErrorCode.TRANSACTION_COMMIT_FAILED,
                original_error=e,
            ) from e
        finally:
            self._finish()

    def abort(self) -> None:
        """Roll back the transaction. Safe to call more than once."""
        if not self.active:
            return
        try:
            if self.conn.in_transaction:
                self.conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.warning("Rollback failed", exc_info=True)
        finally:
            self._finish()

    def _finish(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.readonly:
            try:
                self.conn.execute("PRAGMA query_only = OFF")
            except sqlite3.Error:
                logger.warning("Failed to reset query_only", exc_info=True)


class StorageEnvironment:
    """Transactional storage environment holding both cache tables.

    Attributes:
        pathname: Directory holding the database file
        db_path: Path to the SQLite database file
        busy_timeout_ms: Lock wait for NORMAL transactions

    Example:
        >>> env = StorageEnvironment("/var/cache/app")
        >>> txn = env.begin(TxnMode.TRY)
        >>> kvp = txn.open_table(Tables.KEY_VALUE_PAIRS)
        >>> txn.commit()
        >>> env.close()
    """

    def __init__(
        self,
        pathname: Path | str = Storage.DEFAULT_PATHNAME,
        *,
        db_filename: str = Storage.DB_FILENAME,
        busy_timeout_ms: int = Storage.BUSY_TIMEOUT_MS,
        journal_mode: str = Storage.JOURNAL_MODE,
        synchronous: str = Storage.SYNCHRONOUS,
    ) -> None:
        """Open or create the environment at pathname.

        Args:
            pathname: Existing directory for the database file
            db_filename: Database file name inside pathname
            busy_timeout_ms: How long NORMAL transactions wait for the lock
            journal_mode: SQLite journal mode
            synchronous: SQLite synchronous level

        Raises:
            StorageError: If the path is unusable or the engine fails
        """
        self.pathname = Path(pathname)
        self.db_path = self.pathname / db_filename
        self.busy_timeout_ms = busy_timeout_ms
        self.journal_mode = journal_mode
        self.synchronous = synchronous

        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._closed = False

        self._initialize()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_connections(self) -> int:
        """Number of per-thread connections currently open."""
        with self._lock:
            return len(self._connections)

    def _initialize(self) -> None:
        context = ErrorContext(
            operation="initialize",
            additional_data={"db_path": str(self.db_path)},
        )

        if not self.pathname.is_dir():
            error = StorageError(
                ErrorCode.STORAGE_OPEN_FAILED,
                f"failed to open environment: {self.pathname} is not a directory",
                context,
            )
            log_operation_error(logger, error)
            raise error

        conn = self._connection()
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
            conn.execute(f"PRAGMA synchronous={self.synchronous}")
        except sqlite3.Error as e:
            if is_lock_error(e):
                self.close()
                raise create_lock_contention_error("configure", e) from e
            error = StorageError(
                ErrorCode.STORAGE_CONFIGURE_FAILED,
                f"failed to configure environment: {e!s}",
                context,
                e,
            )
            log_operation_error(logger, error)
            self.close()
            raise error from e

        # Declare tables inside a setup transaction
        try:
            txn = self.begin(TxnMode.NORMAL)
            try:
                SchemaManager(txn.conn).create_tables()
            except sqlite3.Error as e:
                txn.abort()
                error = StorageError(
                    ErrorCode.STORAGE_OPEN_FAILED,
                    f"failed to declare tables: {e!s}",
                    context,
                    e,
                )
                log_operation_error(logger, error)
                raise error from e
            except StorageError:
                txn.abort()
                raise
            txn.commit()
        except StorageError:
            self.close()
            raise

        log_operation_success(
            logger=logger,
            operation="initialize",
            duration_ms=0,
            context=context,
        )

    def _connection(self) -> sqlite3.Connection:
        """Return this thread's connection, opening it on first use."""
        if self._closed:
            raise StorageClosedError(
                ErrorCode.STORAGE_CLOSED,
                f"environment {self.db_path} is closed",
                ErrorContext(operation="connect"),
            )

        holder: _ThreadConnection | None = getattr(self._local, "holder", None)
        if holder is not None:
            return holder.conn

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000,
                isolation_level=None,  # Transactions are explicit
                check_same_thread=False,  # close() may run on another thread
            )
            conn.execute(f"PRAGMA synchronous={self.synchronous}")
        except sqlite3.Error as e:
            error = StorageError(
                ErrorCode.STORAGE_OPEN_FAILED,
                f"failed to open environment {self.db_path}: {e!s}",
                ErrorContext(operation="connect", file_path=str(self.db_path)),
                e,
            )
            log_operation_error(logger, error)
            raise error from e

        with self._lock:
            self._connections.append(conn)
        holder = _ThreadConnection(conn)
        # Thread-local data is dropped when the thread ends
        weakref.finalize(
            holder, _release_connection, self._lock, self._connections, conn
        )
        self._local.holder = holder
        return conn

    def begin(self, mode: TxnMode = TxnMode.NORMAL) -> Transaction:
        """Begin a transaction in the requested mode.

        Args:
            mode: NORMAL waits for the write lock, TRY fails at once if it
                is held, READ_ONLY takes a snapshot and never blocks writers

        Returns:
            Active Transaction

        Raises:
            LockContentionError: If the lock could not be acquired
            StorageClosedError: If the environment is closed
            StorageError: For any other engine failure, or if this thread
                already has a transaction open
        """
        conn = self._connection()
        if conn.in_transaction:
            raise create_storage_error(
                "a transaction is already active on this thread",
                operation="begin",
                code=ErrorCode.TRANSACTION_BEGIN_FAILED,
            )
        try:
            if mode is TxnMode.TRY:
                conn.execute("PRAGMA busy_timeout = 0")
            else:
                conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")

            if mode is TxnMode.READ_ONLY:
                conn.execute("PRAGMA query_only = ON")
                try:
                    conn.execute("BEGIN DEFERRED")
                except sqlite3.Error:
                    conn.execute("PRAGMA query_only = OFF")
                    raise
            else:
                conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            if is_lock_error(e):
                logger.debug("Lock contention on begin (%s)", mode.value)
                raise create_lock_contention_error("begin", e) from e
            msg = f"failed to begin transaction: {e}"
            raise create_storage_error(
                msg,
                operation="begin",
                code=ErrorCode.TRANSACTION_BEGIN_FAILED,
                original_error=e,
            ) from e

        return Transaction(conn, mode)

    def close(self) -> None:
        """Release all engine resources. Later operations raise StorageClosedError."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            connections = list(self._connections)
            self._connections.clear()

        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error:
                logger.warning("Failed to close connection", exc_info=True)
        logger.debug("Closed storage environment: %s", self.db_path)
