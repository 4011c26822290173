"""
TTLVault Typer CLI Application

This is the Typer-based command-line interface for TTLVault. Global
options are parsed by the app callback into the CLI context; each command
delegates to a handler in ttlvault.cli.cache_handler.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from ttlvault.cli.cache_handler import (
    handle_delete_command,
    handle_evict_command,
    handle_get_command,
    handle_info_command,
    handle_keys_command,
    handle_rename_command,
    handle_set_command,
)
from ttlvault.cli.common.context import CliContext, LogLevel, set_cli_context
from ttlvault.cli.common.error_handler import handle_cli_error
from ttlvault.cli.common.options import (
    ConfigOption,
    JsonOutputOption,
    LogLevelOption,
    PathOption,
    VerboseOption,
    VersionOption,
)
from ttlvault.shared.constants import Application, CLIDefaults, CLIHelp
from ttlvault.shared.logging import setup_structured_logger

# Version information
__version__ = Application.VERSION


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(CLIHelp.VERSION_TEXT.format(version=__version__))
        raise typer.Exit


def main_callback(
    verbose: int,
    log_level: LogLevel,
    json_output: bool,
    version: bool,
    path: Optional[Path],
    config: Optional[Path],
) -> None:
    """
    Process the common options.

    This function is called before any command is executed and sets up
    the global CLI context and the package logger.
    """
    if version:
        version_callback(value=True)

    context = CliContext(
        verbose=verbose,
        log_level=log_level,
        json_output=json_output,
        path=path,
        config_path=config,
    )
    set_cli_context(context)
    setup_structured_logger(level=context.get_effective_log_level())


app = typer.Typer(
    name=CLIHelp.APP_NAME,
    help=CLIHelp.APP_DESCRIPTION,
    add_completion=False,
    no_args_is_help=True,
)


def _exit_with(exit_code: int) -> None:
    if exit_code != CLIDefaults.EXIT_SUCCESS:
        raise typer.Exit(exit_code)


@app.callback(invoke_without_command=True)
def main(
    verbose: VerboseOption = 0,
    log_level: LogLevelOption = LogLevel.WARNING,
    json_output: JsonOutputOption = False,
    version: VersionOption = False,
    path: PathOption = None,
    config: ConfigOption = None,
) -> None:
    """Persistent key-value cache with per-entry time-to-live."""
    try:
        main_callback(verbose, log_level, json_output, version, path, config)
    except typer.Exit:
        raise
    except Exception as e:
        exit_code = handle_cli_error(e, "main-callback", json_output=json_output)
        raise typer.Exit(exit_code) from e


@app.command("set")
def set_command(
    key: Annotated[str, typer.Argument(help="Cache key.")],
    value: Annotated[str, typer.Argument(help="Value, stored as UTF-8.")],
    ttl: Annotated[
        Optional[int], typer.Option("--ttl", "-t", min=1, help=CLIHelp.TTL_HELP)
    ] = None,
) -> None:
    """
    Store VALUE under KEY.

    Examples:
        ttlvault set session_1 payload --ttl 60
    """
    _exit_with(handle_set_command(key, value, ttl))


@app.command("get")
def get_command(
    key: Annotated[str, typer.Argument(help="Cache key.")],
    touch: Annotated[
        Optional[int], typer.Option("--touch", min=1, help=CLIHelp.TOUCH_HELP)
    ] = None,
) -> None:
    """
    Print the value of KEY. Exits with status 1 if it is missing or expired.

    Examples:
        ttlvault get session_1
        ttlvault --json get session_1 --touch 300
    """
    _exit_with(handle_get_command(key, touch))


@app.command("delete")
def delete_command(
    key: Annotated[str, typer.Argument(help="Cache key.")],
) -> None:
    """Delete KEY. Deleting a missing key succeeds."""
    _exit_with(handle_delete_command(key))


@app.command("rename")
def rename_command(
    old_key: Annotated[str, typer.Argument(help="Existing key.")],
    new_key: Annotated[str, typer.Argument(help="New key; must not exist.")],
) -> None:
    """Move the value and expiry of OLD_KEY to NEW_KEY."""
    _exit_with(handle_rename_command(old_key, new_key))


@app.command("keys")
def keys_command(
    limit: Annotated[
        Optional[int], typer.Option("--limit", "-n", min=0, help=CLIHelp.LIMIT_HELP)
    ] = None,
) -> None:
    """List keys that have not expired, in key order."""
    _exit_with(handle_keys_command(limit))


@app.command("evict")
def evict_command(
    max_count: Annotated[
        Optional[int], typer.Option("--max-count", "-m", help=CLIHelp.MAX_COUNT_HELP)
    ] = None,
) -> None:
    """Remove expired entries, oldest expiry first."""
    _exit_with(handle_evict_command(max_count))


@app.command("info")
def info_command() -> None:
    """Show the cache location, default TTL and key count."""
    _exit_with(handle_info_command())


if __name__ == "__main__":
    app()
