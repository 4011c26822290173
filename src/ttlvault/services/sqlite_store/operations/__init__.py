"""SQLite store operations module."""

from ttlvault.services.sqlite_store.operations.index import reindex, remove_key
from ttlvault.services.sqlite_store.operations.insert import InsertOperations
from ttlvault.services.sqlite_store.operations.query import QueryOperations
from ttlvault.services.sqlite_store.operations.update import UpdateOperations

__all__ = [
    "InsertOperations",
    "QueryOperations",
    "UpdateOperations",
    "reindex",
    "remove_key",
]
