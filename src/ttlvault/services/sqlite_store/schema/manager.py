"""Schema manager for the TTL store.

This module declares the two logical tables of the store and validates
that an existing database carries the expected layout.
"""

from __future__ import annotations

import logging
import sqlite3

from ttlvault.shared.constants import Storage, Tables
from ttlvault.shared.errors import ErrorCode, ErrorContext, StorageError

logger = logging.getLogger(__name__)


# Physical tables backing each logical table
DECLARED_TABLES: dict[str, tuple[str, ...]] = {
    Tables.KEY_VALUE_PAIRS: (Tables.KEY_VALUE_PAIRS,),
    Tables.EXPIRY_KEY_PAIRS: (Tables.EXPIRY_FORWARD, Tables.EXPIRY_REVERSE),
}


class SchemaManager:
    """Table declaration and schema validation."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize schema manager.

        Args:
            conn: SQLite database connection inside a setup transaction
        """
        self.conn = conn

    def get_current_version(self) -> int:
        """Get schema version from database.

        Returns:
            Current schema version (0 if not set)
        """
        cursor = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (Tables.SCHEMA_VERSION,),
        )
        if cursor.fetchone() is None:
            return 0

        cursor = self.conn.execute(
            f"SELECT MAX(version) FROM {Tables.SCHEMA_VERSION}"  # noqa: S608
        )
        row = cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    def create_tables(self) -> None:
        """Create both logical tables if absent.

        Raises:
            StorageError: If the database holds a newer schema version
        """
        if len(DECLARED_TABLES) > Tables.MAX_TABLES:
            msg = f"at most {Tables.MAX_TABLES} tables may be declared"
            raise StorageError(
                ErrorCode.STORAGE_CONFIGURE_FAILED,
                msg,
                ErrorContext(operation="create_tables"),
            )

        version = self.get_current_version()
        if version > Storage.SCHEMA_VERSION:
            msg = (
                f"database schema version {version} is newer than "
                f"supported version {Storage.SCHEMA_VERSION}"
            )
            raise StorageError(
                ErrorCode.SCHEMA_INVALID,
                msg,
                ErrorContext(operation="create_tables"),
            )

        # key_value_pairs: primary table
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {Tables.KEY_VALUE_PAIRS} (
                key TEXT PRIMARY KEY NOT NULL,
                value BLOB NOT NULL
            ) WITHOUT ROWID
            """
        )
        # expiry_key_pairs: forward map, one expiry per key
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {Tables.EXPIRY_FORWARD} (
                key TEXT PRIMARY KEY NOT NULL,
                expiry REAL NOT NULL
            ) WITHOUT ROWID
            """
        )
        # expiry_key_pairs: reverse multi-map sorted by expiry
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {Tables.EXPIRY_REVERSE} (
                expiry REAL NOT NULL,
                key TEXT NOT NULL,
                PRIMARY KEY (expiry, key)
            ) WITHOUT ROWID
            """
        )
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {Tables.SCHEMA_VERSION} (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP NOT NULL
            )
            """
        )

        if version < Storage.SCHEMA_VERSION:
            self.conn.execute(
                f"INSERT OR REPLACE INTO {Tables.SCHEMA_VERSION} (version) VALUES (?)",  # noqa: S608
                (Storage.SCHEMA_VERSION,),
            )
            logger.info("Created database schema (v%d)", Storage.SCHEMA_VERSION)

    def validate_schema(self) -> bool:
        """Validate that every declared table exists.

        Returns:
            True if schema is valid, False otherwise
        """
        for logical, physical_tables in DECLARED_TABLES.items():
            for table in physical_tables:
                cursor = self.conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                    (table,),
                )
                if cursor.fetchone() is None:
                    logger.error(
                        "Required table '%s' of '%s' not found", table, logical
                    )
                    return False

        version = self.get_current_version()
        if version != Storage.SCHEMA_VERSION:
            logger.error("Unexpected schema version: %d", version)
            return False

        return True
