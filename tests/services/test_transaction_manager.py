"""Unit tests for the TTL store transaction manager.

This module tests TransactionManager to ensure both tables are handed to
a unit of work inside one transaction with proper commit and rollback.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from ttlvault.services.sqlite_store.environment import StorageEnvironment, TxnMode
from ttlvault.services.sqlite_store.tables import ExpiryIndexTable, KeyValueTable
from ttlvault.services.sqlite_store.transaction.manager import TransactionManager
from ttlvault.shared.errors import LockContentionError, StorageError


@pytest.fixture
def environment(store_dir: Path):
    """Create a storage environment for testing."""
    env = StorageEnvironment(store_dir)
    yield env
    env.close()


@pytest.fixture
def transaction_manager(environment: StorageEnvironment) -> TransactionManager:
    """Create TransactionManager instance."""
    return TransactionManager(environment)


def _read(manager: TransactionManager, key: str) -> tuple[bytes | None, float | None]:
    def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable):
        return kvp.get(key), ekp.get(key)

    return manager.run(unit_of_work, TxnMode.READ_ONLY, "read")


class TestTransactionManager:
    """Test TransactionManager."""

    def test_transaction_commits_on_success(
        self, transaction_manager: TransactionManager
    ) -> None:
        """Test that the context manager commits on success."""
        # Given / When
        with transaction_manager.transaction() as (kvp, ekp):
            kvp.upsert("alpha", b"value")
            ekp.upsert("alpha", 10.0)

        # Then
        assert _read(transaction_manager, "alpha") == (b"value", 10.0)

    def test_transaction_rolls_back_on_exception(
        self, transaction_manager: TransactionManager
    ) -> None:
        """Test that both tables roll back together."""
        # Given / When
        with pytest.raises(RuntimeError, match="boom"):
            with transaction_manager.transaction() as (kvp, ekp):
                kvp.upsert("alpha", b"value")
                ekp.upsert("alpha", 10.0)
                raise RuntimeError("boom")

        # Then
        assert _read(transaction_manager, "alpha") == (None, None)

    def test_run_returns_unit_of_work_result(
        self, transaction_manager: TransactionManager
    ) -> None:
        """Test that run returns what the unit of work returned."""

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> str:
            kvp.upsert("alpha", b"value")
            return "done"

        assert transaction_manager.run(unit_of_work, TxnMode.TRY, "write") == "done"
        assert _read(transaction_manager, "alpha")[0] == b"value"

    def test_run_propagates_and_aborts(
        self, transaction_manager: TransactionManager
    ) -> None:
        """Test that exceptions from the unit of work propagate unchanged."""

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> None:
            kvp.upsert("alpha", b"value")
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            transaction_manager.run(unit_of_work)

        assert _read(transaction_manager, "alpha") == (None, None)

    def test_run_wraps_table_errors(
        self, transaction_manager: TransactionManager
    ) -> None:
        """Test that writes in a read-only run surface as StorageError."""

        def unit_of_work(kvp: KeyValueTable, ekp: ExpiryIndexTable) -> None:
            kvp.upsert("alpha", b"value")

        with pytest.raises(StorageError):
            transaction_manager.run(unit_of_work, TxnMode.READ_ONLY, "write")

    def test_run_reports_lock_contention(self, store_dir: Path) -> None:
        """Test that TRY mode raises LockContentionError while another writer holds the lock."""
        holder = StorageEnvironment(store_dir)
        contender = StorageEnvironment(store_dir)
        try:
            txn = holder.begin(TxnMode.NORMAL)
            manager = TransactionManager(contender)

            with pytest.raises(LockContentionError):
                manager.run(lambda kvp, ekp: None, TxnMode.TRY, "write")

            txn.abort()
            assert manager.run(lambda kvp, ekp: 1, TxnMode.TRY, "write") == 1
        finally:
            holder.close()
            contender.close()
