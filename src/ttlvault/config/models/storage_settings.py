"""Storage engine configuration model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ttlvault.shared.constants import Storage


class StorageSettings(BaseModel):
    """SQLite engine configuration.

    Non-blocking writes ignore busy_timeout_ms; it only bounds how long
    blocking transactions (table setup) wait for the write lock.
    """

    busy_timeout_ms: int = Field(
        default=Storage.BUSY_TIMEOUT_MS,
        ge=0,
        description="Lock wait for blocking transactions in milliseconds",
    )
    journal_mode: Literal["WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY"] = Field(
        default=Storage.JOURNAL_MODE,
        description="SQLite journal mode",
    )
    synchronous: Literal["OFF", "NORMAL", "FULL", "EXTRA"] = Field(
        default=Storage.SYNCHRONOUS,
        description="SQLite synchronous level",
    )


__all__ = ["StorageSettings"]
