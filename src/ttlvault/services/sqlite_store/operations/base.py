"""Base operation class for TTL store operations.

This module provides shared functionality for all cache operations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, TypeVar

from ttlvault.services.sqlite_store.environment import TxnMode
from ttlvault.shared.errors import LockContentionError

if TYPE_CHECKING:
    from ttlvault.core.statistics import StatisticsCollector
    from ttlvault.services.sqlite_store.transaction.manager import (
        TransactionManager,
        UnitOfWork,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class BaseOperation:
    """Base class for cache operations with shared functionality."""

    def __init__(
        self,
        transactions: TransactionManager,
        statistics: StatisticsCollector,
        clock: Clock,
    ) -> None:
        """Initialize base operation.

        Args:
            transactions: Transaction manager wrapping the environment
            statistics: Statistics collector for the store
            clock: Source of absolute time in seconds
        """
        self.transactions = transactions
        self.statistics = statistics
        self.clock = clock

    def _run(
        self,
        unit_of_work: UnitOfWork[T],
        mode: TxnMode,
        operation: str,
    ) -> T:
        """Run unit_of_work in one transaction, counting lock contention."""
        try:
            return self.transactions.run(unit_of_work, mode, operation)
        except LockContentionError:
            self.statistics.record_lock_contention()
            raise
