"""Transaction manager for the TTL store.

This module is the only place cache operations open transactions. A unit
of work receives handles to both tables inside one transaction; the
manager commits when it returns and aborts when it raises.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, TypeVar

from ttlvault.services.sqlite_store.environment import StorageEnvironment, TxnMode
from ttlvault.shared.constants import Tables
from ttlvault.shared.errors import (
    LockContentionError,
    TTLVaultError,
)
from ttlvault.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
)

if TYPE_CHECKING:
    from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWork = Callable[["KeyValueTable", "ExpiryIndexTable"], T]


class TransactionManager:
    """Transaction management for cache operations."""

    def __init__(self, environment: StorageEnvironment) -> None:
        """Initialize transaction manager.

        Args:
            environment: Storage environment that owns both tables
        """
        self.environment = environment

    @contextmanager
    def transaction(
        self,
        mode: TxnMode = TxnMode.NORMAL,
    ) -> Generator[tuple[KeyValueTable, ExpiryIndexTable], None, None]:
        """Context manager yielding both table handles in one transaction.

        Commits on success or aborts on exception.

        Example:
            >>> with manager.transaction(TxnMode.TRY) as (kvp, ekp):
            ...     kvp.upsert("key1", b"data")
        """
        txn = self.environment.begin(mode)
        try:
            kvp = txn.open_table(Tables.KEY_VALUE_PAIRS)
            ekp = txn.open_table(Tables.EXPIRY_KEY_PAIRS)
            yield kvp, ekp  # type: ignore[misc]
        except BaseException:
            txn.abort()
            raise
        txn.commit()

    def run(
        self,
        unit_of_work: UnitOfWork[T],
        mode: TxnMode = TxnMode.NORMAL,
        operation: str = "transaction",
    ) -> T:
        """Execute unit_of_work(kvp, ekp) atomically.

        Args:
            unit_of_work: Callable receiving the key-value and expiry
                index handles; its return value is the result
            mode: Transaction acquisition mode
            operation: Operation name for logging

        Returns:
            Result of unit_of_work once the transaction committed

        Raises:
            LockContentionError: If a TRY transaction found the lock held
            StorageError: If begin, table access or commit failed
            Exception: Whatever unit_of_work raised, after the abort
        """
        log_operation_start(logger, operation, {"mode": mode.value})
        start = time.perf_counter()
        try:
            with self.transaction(mode) as (kvp, ekp):
                result = unit_of_work(kvp, ekp)
        except LockContentionError:
            logger.debug("Operation '%s' hit lock contention", operation)
            raise
        except TTLVaultError as e:
            log_operation_error(logger, e, operation=operation)
            raise

        log_operation_success(
            logger=logger,
            operation=operation,
            duration_ms=(time.perf_counter() - start) * 1000,
            context={"mode": mode.value},
        )
        return result
