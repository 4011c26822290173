"""Tests for the TTLVault command-line interface."""

from __future__ import annotations

import json
import time
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ttlvault.cli.json_formatter import format_json_output
from ttlvault.cli.typer_app import app
from ttlvault.services.sqlite_store.environment import StorageEnvironment, TxnMode
from ttlvault.services.ttl_cache import TTLCache
from ttlvault.shared.constants import CLIDefaults


class PastClock:
    """Clock frozen well before the real current time."""

    def __init__(self) -> None:
        self.now = time.time() - 1000

    def __call__(self) -> float:
        return self.now


class TestCli:
    """Test CLI commands against a temporary cache directory."""

    @pytest.fixture(autouse=True)
    def _workspace(self, store_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Run every command from an empty directory."""
        workdir = tmp_path / "work"
        workdir.mkdir()
        monkeypatch.chdir(workdir)
        self.store_dir = store_dir
        self.runner = CliRunner()

    def invoke(self, *args: str):
        return self.runner.invoke(app, ["--path", str(self.store_dir), *args])

    def invoke_json(self, *args: str) -> tuple[int, dict]:
        result = self.invoke("--json", *args)
        return result.exit_code, json.loads(result.stdout)

    def test_app_help(self) -> None:
        """Test main app help."""
        result = self.runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Usage:" in result.stdout

    def test_version(self) -> None:
        """Test the version flag."""
        result = self.runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "ttlvault 0.1.0" in result.stdout

    def test_invalid_command(self) -> None:
        """Test invalid command."""
        result = self.runner.invoke(app, ["invalid"])
        assert result.exit_code != 0

    def test_set_and_get(self) -> None:
        """Test storing and reading a value."""
        result = self.invoke("set", "alpha", "hello", "--ttl", "60")
        assert result.exit_code == 0
        assert "Stored alpha" in result.stdout

        result = self.invoke("get", "alpha")
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"

    def test_get_missing_key_exits_non_zero(self) -> None:
        """Test that a miss is reported through the exit code."""
        result = self.invoke("get", "ghost")
        assert result.exit_code == CLIDefaults.EXIT_NOT_FOUND
        assert "Key not found: ghost" in result.output

    def test_get_json(self) -> None:
        """Test the JSON envelope of get."""
        self.invoke("set", "alpha", "hello")

        exit_code, payload = self.invoke_json("get", "alpha", "--touch", "30")

        assert exit_code == 0
        assert payload["success"] is True
        assert payload["command"] == "get"
        assert payload["data"] == {"key": "alpha", "value": "hello"}
        assert payload["errors"] == []

    def test_get_json_miss(self) -> None:
        """Test the JSON envelope of a miss."""
        exit_code, payload = self.invoke_json("get", "ghost")

        assert exit_code == CLIDefaults.EXIT_NOT_FOUND
        assert payload["success"] is False
        assert payload["data"]["value"] is None

    def test_delete(self) -> None:
        """Test deleting present and absent keys."""
        self.invoke("set", "alpha", "hello")

        assert self.invoke("delete", "alpha").exit_code == 0
        assert self.invoke("delete", "alpha").exit_code == 0
        assert self.invoke("get", "alpha").exit_code == CLIDefaults.EXIT_NOT_FOUND

    def test_rename(self) -> None:
        """Test renaming and the failure exit code."""
        self.invoke("set", "alpha", "hello")
        self.invoke("set", "charlie", "other")

        result = self.invoke("rename", "alpha", "bravo")
        assert result.exit_code == 0
        assert self.invoke("get", "bravo").stdout.strip() == "hello"

        result = self.invoke("rename", "bravo", "charlie")
        assert result.exit_code == CLIDefaults.EXIT_ERROR

    def test_keys(self) -> None:
        """Test listing keys as text and JSON."""
        for key in ["charlie", "alpha", "bravo"]:
            self.invoke("set", key, "v")

        result = self.invoke("keys")
        assert result.exit_code == 0
        assert result.stdout.split() == ["alpha", "bravo", "charlie"]

        exit_code, payload = self.invoke_json("keys", "--limit", "2")
        assert exit_code == 0
        assert payload["data"] == {"keys": ["alpha", "bravo"], "count": 2}

    def test_evict(self) -> None:
        """Test evicting entries that expired in the past."""
        with TTLCache(10, self.store_dir, clock=PastClock()) as cache:
            cache.set("old_1", b"1")
            cache.set("old_2", b"2")
        self.invoke("set", "fresh", "v")

        exit_code, payload = self.invoke_json("evict", "--max-count", "1")
        assert exit_code == 0
        assert payload["data"] == {"evicted": 1, "keys": ["old_1"]}

        result = self.invoke("evict")
        assert result.exit_code == 0
        assert "Evicted 1 expired entries" in result.stdout

    def test_info(self) -> None:
        """Test the info command."""
        self.invoke("set", "alpha", "v")

        exit_code, payload = self.invoke_json("info")

        assert exit_code == 0
        assert payload["data"]["fresh_keys"] == 1
        assert payload["data"]["schema_valid"] is True
        assert payload["data"]["default_ttl"] == 3600
        assert payload["data"]["db_path"] == str(self.store_dir / "ttlvault.db")

    def test_info_table(self) -> None:
        """Test the human readable info output."""
        result = self.invoke("info")
        assert result.exit_code == 0
        assert "schema_valid" in result.stdout

    def test_config_file(self, tmp_path: Path) -> None:
        """Test that a configuration file sets the default TTL."""
        config = tmp_path / "custom.toml"
        config.write_text("[cache]\ndefault_ttl = 5\n", encoding="utf-8")

        result = self.invoke("--config", str(config), "--json", "set", "alpha", "v")

        assert result.exit_code == 0
        assert json.loads(result.stdout)["data"] == {"key": "alpha", "ttl": 5}

    def test_invalid_key(self) -> None:
        """Test that facade validation errors are reported."""
        result = self.invoke("set", "bad key", "v")

        assert result.exit_code == CLIDefaults.EXIT_ERROR
        assert "Error: Cache error: key must be string of" in result.output

    def test_invalid_config(self, tmp_path: Path) -> None:
        """Test that a broken configuration file is reported."""
        config = tmp_path / "broken.toml"
        config.write_text("[cache]\ndefault_ttl = -1\n", encoding="utf-8")

        result = self.invoke("--config", str(config), "keys")

        assert result.exit_code == CLIDefaults.EXIT_ERROR
        assert "Application error" in result.output

    def test_lock_contention(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a held write lock maps to the retry exit code."""
        monkeypatch.setenv("TTLVAULT_STORAGE__BUSY_TIMEOUT_MS", "0")
        self.invoke("set", "alpha", "v")

        holder = StorageEnvironment(self.store_dir)
        txn = holder.begin(TxnMode.NORMAL)
        try:
            result = self.invoke("set", "alpha", "w")
        finally:
            txn.abort()
            holder.close()

        assert result.exit_code == CLIDefaults.EXIT_RETRY
        assert "retry later" in result.output


def test_format_json_output() -> None:
    """Test the JSON envelope."""
    payload = json.loads(format_json_output(True, "evict", data={"evicted": 2}))

    assert payload["success"] is True
    assert payload["command"] == "evict"
    assert payload["data"] == {"evicted": 2}
    assert payload["errors"] == []
    assert "timestamp" in payload


def test_format_json_output_errors_force_failure() -> None:
    """Test that errors mark the envelope unsuccessful."""
    payload = json.loads(format_json_output(True, "get", errors=["boom"]))

    assert payload["success"] is False
    assert payload["errors"] == ["boom"]
