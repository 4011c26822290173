"""SQLite store transaction module.

This module provides transaction management for cache operations.
"""

from ttlvault.services.sqlite_store.transaction.manager import TransactionManager

__all__ = ["TransactionManager"]
