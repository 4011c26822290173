"""SQLite store module with modular operations.

This module separates the storage environment, the transaction manager,
the expiry index maintainer and the cache operations built on them.
"""

from ttlvault.services.sqlite_store.environment import (
    StorageEnvironment,
    Transaction,
    TxnMode,
)
from ttlvault.services.sqlite_store.transaction import TransactionManager

__all__ = ["StorageEnvironment", "Transaction", "TransactionManager", "TxnMode"]
