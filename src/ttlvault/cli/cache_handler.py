"""Cache command handlers for the TTLVault CLI.

Each handler opens the cache from the loaded settings, performs one
operation and prints the result either as text or as a JSON envelope.
Handlers return an exit code; errors are mapped by handle_cli_errors.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from ttlvault.cli.common.context import CliContext, get_cli_context
from ttlvault.cli.common.error_handler import handle_cli_errors
from ttlvault.cli.json_formatter import format_json_output
from ttlvault.config.loader import load_settings
from ttlvault.config.models import Settings
from ttlvault.services.ttl_cache import TTLCache
from ttlvault.shared.constants import Cache, CLIDefaults
from ttlvault.shared.logging import setup_structured_logger

logger = logging.getLogger(__name__)


def _open_cache(context: CliContext) -> tuple[TTLCache, Settings]:
    """Load settings and open the cache they describe."""
    settings = load_settings(context.config_path)
    if settings.logging.file:
        setup_structured_logger(
            level=context.get_effective_log_level(),
            log_file=settings.logging.file,
            use_rich_console=settings.logging.use_rich_console,
        )
    cache = TTLCache.from_settings(settings, pathname=context.path)
    logger.debug("Opened cache at %s", cache.store.db_path)
    return cache, settings


def _decode(value: bytes) -> str:
    return value.decode(Cache.VALUE_ENCODING, errors="backslashreplace")


def _emit_json(command: str, data: Any, errors: list[str] | None = None) -> None:
    output = format_json_output(
        success=not errors,
        command=command,
        data=data,
        errors=errors,
    )
    typer.echo(output.decode("utf-8"))


@handle_cli_errors("set")
def handle_set_command(key: str, value: str, ttl: int | None) -> int:
    """Handle the set command."""
    context = get_cli_context()
    cache, _ = _open_cache(context)
    with cache:
        cache.set(key, value, ttl)
        effective_ttl = cache.ttl if ttl is None else ttl

    if context.json_output:
        _emit_json("set", {"key": key, "ttl": effective_ttl})
    else:
        typer.echo(f"Stored {key} (ttl {effective_ttl}s)")
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("get")
def handle_get_command(key: str, touch: int | None) -> int:
    """Handle the get command. A missing or expired key exits non-zero."""
    context = get_cli_context()
    cache, _ = _open_cache(context)
    with cache:
        value = cache.get(key, touch)

    if value is None:
        if context.json_output:
            _emit_json("get", {"key": key, "value": None}, [f"key not found: {key}"])
        else:
            sys.stderr.write(f"Key not found: {key}\n")
        return CLIDefaults.EXIT_NOT_FOUND

    if context.json_output:
        _emit_json("get", {"key": key, "value": _decode(value)})
    else:
        typer.echo(_decode(value))
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("delete")
def handle_delete_command(key: str) -> int:
    """Handle the delete command."""
    context = get_cli_context()
    cache, _ = _open_cache(context)
    with cache:
        cache.delete(key)

    if context.json_output:
        _emit_json("delete", {"key": key})
    else:
        typer.echo(f"Deleted {key}")
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("rename")
def handle_rename_command(old_key: str, new_key: str) -> int:
    """Handle the rename command. Exits non-zero if nothing was renamed."""
    context = get_cli_context()
    cache, _ = _open_cache(context)
    with cache:
        renamed = cache.rename(old_key, new_key)

    errors = None if renamed else [f"cannot rename {old_key} to {new_key}"]
    if context.json_output:
        _emit_json(
            "rename",
            {"old_key": old_key, "new_key": new_key, "renamed": renamed},
            errors,
        )
    elif renamed:
        typer.echo(f"Renamed {old_key} to {new_key}")
    else:
        sys.stderr.write(
            f"Not renamed: {old_key} is missing or expired, or {new_key} exists\n"
        )
    return CLIDefaults.EXIT_SUCCESS if renamed else CLIDefaults.EXIT_ERROR


@handle_cli_errors("keys")
def handle_keys_command(limit: int | None) -> int:
    """Handle the keys command."""
    context = get_cli_context()
    cache, _ = _open_cache(context)
    with cache:
        keys = cache.list_keys(limit)

    if context.json_output:
        _emit_json("keys", {"keys": keys, "count": len(keys)})
    else:
        for key in keys:
            typer.echo(key)
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("evict")
def handle_evict_command(max_count: int | None) -> int:
    """Handle the evict command."""
    context = get_cli_context()
    cache, settings = _open_cache(context)
    if max_count is None:
        max_count = settings.cache.evict_batch_size

    evicted_keys: list[str] = []

    def record(key: str) -> bool:
        evicted_keys.append(key)
        return True

    with cache:
        evicted = cache.evict(record, max_count)

    if context.json_output:
        _emit_json("evict", {"evicted": evicted, "keys": evicted_keys})
    else:
        typer.echo(f"Evicted {evicted} expired entries")
        if context.is_verbose():
            for key in evicted_keys:
                typer.echo(f"  {key}")
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors("info")
def handle_info_command() -> int:
    """Handle the info command."""
    context = get_cli_context()
    cache, settings = _open_cache(context)
    with cache:
        info = {
            "db_path": str(cache.store.db_path),
            "default_ttl": cache.ttl,
            "fresh_keys": cache.keys(lambda key: True),
            "schema_valid": cache.validate_schema(),
            "journal_mode": settings.storage.journal_mode,
        }

    if context.json_output:
        _emit_json("info", info)
        return CLIDefaults.EXIT_SUCCESS

    table = Table(title="TTLVault Cache")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")
    for name, value in info.items():
        table.add_row(name, str(value))
    Console().print(table)
    return CLIDefaults.EXIT_SUCCESS
