"""Tests for lock contention and closed stores."""

from __future__ import annotations

import gc
import threading
from pathlib import Path

import pytest

from ttlvault.services.sqlite_store.environment import TxnMode
from ttlvault.services.ttl_store_db import SQLiteTTLStore
from ttlvault.shared.errors import LockContentionError, StorageClosedError


@pytest.fixture
def writer_holding_lock(store_dir: Path):
    """Open a second store on the same directory and hold its write lock."""
    holder = SQLiteTTLStore(store_dir)
    txn = holder.environment.begin(TxnMode.NORMAL)
    yield txn
    txn.abort()
    holder.close()


class TestLockContention:
    """Test non-blocking writers against a held write lock."""

    def test_writes_fail_fast(self, store: SQLiteTTLStore, writer_holding_lock) -> None:
        """Test that every write raises LockContentionError instead of waiting."""
        with pytest.raises(LockContentionError):
            store.set("alpha", b"1", 60)
        with pytest.raises(LockContentionError):
            store.delete("alpha")
        with pytest.raises(LockContentionError):
            store.rename("alpha", "bravo")
        with pytest.raises(LockContentionError):
            store.evict()
        with pytest.raises(LockContentionError):
            store.get("alpha")

        assert store.stats().lock_contentions == 5

    def test_readers_proceed(self, store: SQLiteTTLStore, store_dir: Path) -> None:
        """Test that keys works while another writer holds the lock."""
        store.set("alpha", b"1", 60)

        holder = SQLiteTTLStore(store_dir)
        txn = holder.environment.begin(TxnMode.NORMAL)
        try:
            assert store.keys(lambda key: True) == 1
        finally:
            txn.abort()
            holder.close()

    def test_writes_resume_after_release(self, store: SQLiteTTLStore, store_dir: Path) -> None:
        """Test that contention is transient."""
        holder = SQLiteTTLStore(store_dir)
        txn = holder.environment.begin(TxnMode.NORMAL)
        with pytest.raises(LockContentionError):
            store.set("alpha", b"1", 60)
        txn.abort()
        holder.close()

        assert store.set("alpha", b"1", 60) is True


class TestThreads:
    """Test sharing one store across threads."""

    def test_finished_threads_release_connections(self, store: SQLiteTTLStore) -> None:
        """Test that short-lived threads do not leave connections open."""
        store.set("alpha", b"1", 60)
        assert store.environment.open_connections == 1

        for _ in range(20):
            thread = threading.Thread(target=store.get, args=("alpha",))
            thread.start()
            thread.join()

        for _ in range(50):
            gc.collect()
            if store.environment.open_connections == 1:
                break
            threading.Event().wait(0.01)

        assert store.environment.open_connections == 1
        assert store.get("alpha") == b"1"

    def test_threads_use_own_connections(self, store: SQLiteTTLStore) -> None:
        """Test that writes from several threads all land."""
        errors: list[BaseException] = []

        def worker(index: int) -> None:
            for attempt in range(50):
                try:
                    store.set(f"key_{index}", str(index).encode(), 60)
                    return
                except LockContentionError:
                    threading.Event().wait(0.01 * (attempt + 1))
                except Exception as e:  # noqa: BLE001
                    errors.append(e)
                    return
            errors.append(RuntimeError(f"worker {index} never acquired the lock"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        found: list[str] = []

        def collect(key: str) -> bool:
            found.append(key)
            return True

        assert store.keys(collect) == 4
        assert found == ["key_0", "key_1", "key_2", "key_3"]


class TestClosedStore:
    """Test operations on a closed store."""

    def test_operations_raise_after_close(self, store_dir: Path) -> None:
        """Test that a closed store refuses every operation."""
        ttl_store = SQLiteTTLStore(store_dir)
        ttl_store.close()
        ttl_store.close()

        with pytest.raises(StorageClosedError):
            ttl_store.set("alpha", b"1", 60)
        with pytest.raises(StorageClosedError):
            ttl_store.get("alpha")
        with pytest.raises(StorageClosedError):
            ttl_store.keys(lambda key: True)
