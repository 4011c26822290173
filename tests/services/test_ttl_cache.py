"""Tests for the TTLCache facade."""

from __future__ import annotations

from pathlib import Path

import pytest

from ttlvault.config.models import CacheSettings, Settings, StorageSettings
from ttlvault.services.ttl_cache import TTLCache
from ttlvault.services.ttl_store_db import SQLiteTTLStore
from ttlvault.shared.errors import (
    CacheValidationError,
    ErrorCode,
    LockContentionError,
    StorageError,
    create_lock_contention_error,
)


class TestTTLCacheOpen:
    """Test opening the cache."""

    def test_defaults(self, store_dir: Path) -> None:
        """Test that a cache opens with a default ttl."""
        with TTLCache(pathname=store_dir) as cache:
            assert cache.ttl == 3600
            assert cache.store.db_path.parent == store_dir

    @pytest.mark.parametrize("ttl", [0, -5, 1.5, "60", True, None])
    def test_invalid_default_ttl(self, store_dir: Path, ttl: object) -> None:
        """Test that the default ttl must be a positive integer."""
        with pytest.raises(CacheValidationError) as exc_info:
            TTLCache(ttl, store_dir)  # type: ignore[arg-type]

        assert exc_info.value.code == ErrorCode.INVALID_TTL
        assert exc_info.value.message == "ttl must be positive-integer"

    def test_invalid_pathname(self) -> None:
        """Test that the pathname must be a string."""
        with pytest.raises(CacheValidationError) as exc_info:
            TTLCache(60, 42)  # type: ignore[arg-type]
        assert exc_info.value.message == "pathname must be string"

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test that the directory must exist."""
        with pytest.raises(StorageError):
            TTLCache(60, tmp_path / "missing")

    def test_from_settings(self, store_dir: Path, clock) -> None:
        """Test that settings drive ttl, location and engine options."""
        settings = Settings(
            cache=CacheSettings(default_ttl=15, path=str(store_dir), db_filename="c.db"),
            storage=StorageSettings(busy_timeout_ms=100),
        )

        with TTLCache.from_settings(settings, clock=clock) as cache:
            assert cache.ttl == 15
            assert cache.store.db_path == store_dir / "c.db"
            assert cache.store.environment.busy_timeout_ms == 100

    def test_evict_on_open(self, store_dir: Path, clock) -> None:
        """Test that expired entries can be removed when opening."""
        with TTLCache(10, store_dir, clock=clock) as cache:
            cache.set("alpha", b"1")
            cache.set("bravo", b"2", 100)

        clock.advance(10)
        with TTLCache(10, store_dir, evict_on_open=True, clock=clock) as cache:
            assert cache.stats().evictions == 1
            assert cache.list_keys() == ["bravo"]

    def test_failed_evict_on_open_closes_store(
        self, store_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the store is closed when eviction on open fails."""
        opened: list[SQLiteTTLStore] = []
        original_init = SQLiteTTLStore.__init__

        def tracking_init(store: SQLiteTTLStore, *args, **kwargs) -> None:
            original_init(store, *args, **kwargs)
            opened.append(store)

        def contended_evict(store: SQLiteTTLStore, *args, **kwargs) -> int:
            raise create_lock_contention_error("evict")

        monkeypatch.setattr(SQLiteTTLStore, "__init__", tracking_init)
        monkeypatch.setattr(SQLiteTTLStore, "evict", contended_evict)

        with pytest.raises(LockContentionError):
            TTLCache(10, store_dir, evict_on_open=True)

        assert len(opened) == 1
        assert opened[0].environment.closed is True


class TestTTLCacheOperations:
    """Test the facade operations."""

    def test_set_uses_default_ttl(self, cache: TTLCache, clock) -> None:
        """Test that set without ttl uses the cache's ttl."""
        cache.set("alpha", "hello")

        clock.advance(59)
        assert cache.get("alpha") == b"hello"
        clock.advance(1)
        assert cache.get("alpha") is None

    def test_set_with_ttl(self, cache: TTLCache, clock) -> None:
        """Test that an explicit ttl overrides the default."""
        cache.set("alpha", b"1", 5)
        clock.advance(5)
        assert cache.get("alpha") is None

    def test_str_values_are_utf8(self, cache: TTLCache) -> None:
        """Test that text values are stored as UTF-8."""
        cache.set("alpha", "café")
        assert cache.get("alpha") == "café".encode("utf-8")

    def test_get_touch(self, cache: TTLCache, clock) -> None:
        """Test that get with ttl extends the lifetime."""
        cache.set("alpha", b"1")
        clock.advance(50)
        assert cache.get("alpha", 100) == b"1"
        clock.advance(90)
        assert cache.get("alpha") == b"1"

    @pytest.mark.parametrize("key", ["", "has space", "dot.ted", "slash/key", 7, None])
    def test_invalid_keys(self, cache: TTLCache, key: object) -> None:
        """Test that keys must match the allowed pattern."""
        with pytest.raises(CacheValidationError) as exc_info:
            cache.set(key, b"1")  # type: ignore[arg-type]
        assert exc_info.value.code == ErrorCode.INVALID_KEY
        assert exc_info.value.message == 'key must be string of "^[a-zA-Z0-9_-]+$"'

    def test_invalid_key_on_every_operation(self, cache: TTLCache) -> None:
        """Test that get and delete validate keys too."""
        with pytest.raises(CacheValidationError):
            cache.get("bad key")
        with pytest.raises(CacheValidationError):
            cache.delete("bad key")

    def test_rename_names_the_bad_argument(self, cache: TTLCache) -> None:
        """Test that rename reports which key is invalid."""
        with pytest.raises(CacheValidationError, match="oldkey"):
            cache.rename("bad key", "good")
        with pytest.raises(CacheValidationError, match="newkey"):
            cache.rename("good", "bad key")

    def test_invalid_value(self, cache: TTLCache) -> None:
        """Test that values must be bytes or str."""
        with pytest.raises(CacheValidationError) as exc_info:
            cache.set("alpha", 12)  # type: ignore[arg-type]
        assert exc_info.value.code == ErrorCode.INVALID_VALUE

    @pytest.mark.parametrize("ttl", [0, -1, 2.5])
    def test_invalid_ttl_on_set_and_get(self, cache: TTLCache, ttl: object) -> None:
        """Test that per-call ttls are validated."""
        with pytest.raises(CacheValidationError):
            cache.set("alpha", b"1", ttl)  # type: ignore[arg-type]
        with pytest.raises(CacheValidationError):
            cache.get("alpha", ttl)  # type: ignore[arg-type]

    def test_delete_and_rename(self, cache: TTLCache) -> None:
        """Test delete and rename through the facade."""
        cache.set("alpha", b"1")
        assert cache.rename("alpha", "bravo") is True
        assert cache.delete("bravo") is True
        assert cache.get("bravo") is None

    def test_keys_requires_callable(self, cache: TTLCache) -> None:
        """Test that keys rejects a non-callable visitor."""
        with pytest.raises(CacheValidationError):
            cache.keys("not callable")  # type: ignore[arg-type]

    def test_list_keys(self, cache: TTLCache) -> None:
        """Test listing keys with and without a limit."""
        for key in ["charlie", "alpha", "bravo"]:
            cache.set(key, b"v")

        assert cache.list_keys() == ["alpha", "bravo", "charlie"]
        assert cache.list_keys(2) == ["alpha", "bravo"]
        assert cache.list_keys(0) == []

    def test_evict_argument_checks(self, cache: TTLCache) -> None:
        """Test that evict validates its arguments."""
        with pytest.raises(CacheValidationError):
            cache.evict(visit="nope")  # type: ignore[arg-type]
        with pytest.raises(CacheValidationError):
            cache.evict(max_count="3")  # type: ignore[arg-type]

    def test_evict(self, cache: TTLCache, clock) -> None:
        """Test that evict removes expired entries."""
        cache.set("alpha", b"1", 1)
        cache.set("bravo", b"2", 100)
        clock.advance(1)

        assert cache.evict() == 1
        assert cache.list_keys() == ["bravo"]

    def test_iter_expired(self, cache: TTLCache, clock) -> None:
        """Test the iterator form of eviction through the facade."""
        cache.set("alpha", b"1", 1)
        cache.set("bravo", b"2", 1)
        cache.set("charlie", b"3", 100)
        clock.advance(1)

        with cache.iter_expired() as expired:
            for key in expired:
                if key == "bravo":
                    break

        assert cache.list_keys() == ["charlie"]
        with cache.iter_keys() as keys:
            assert list(keys) == ["charlie"]

    def test_iter_expired_rejects_bad_max_count(self, cache: TTLCache) -> None:
        """Test that iter_expired validates max_count."""
        with pytest.raises(CacheValidationError):
            with cache.iter_expired(max_count=1.5):  # type: ignore[arg-type]
                pass
