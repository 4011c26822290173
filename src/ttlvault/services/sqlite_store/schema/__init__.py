"""SQLite store schema module."""

from ttlvault.services.sqlite_store.schema.manager import SchemaManager

__all__ = ["SchemaManager"]
