"""
CLI Error Handling Utilities

This module maps exceptions raised by commands to CLI errors with exit
codes, logs them, and writes the error in the requested output format.
"""

from __future__ import annotations

import functools
import logging
import sys
from typing import Any, Callable, TypeVar

import typer

from ttlvault.cli.common.context import get_cli_context
from ttlvault.cli.json_formatter import format_json_output
from ttlvault.shared.constants import CLIDefaults
from ttlvault.shared.errors import (
    ApplicationError,
    CliError,
    DomainError,
    ErrorCode,
    EvictionError,
    InfrastructureError,
    LockContentionError,
    TTLVaultError,
    create_cli_error,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def handle_cli_error(
    error: BaseException,
    command: str,
    *,
    json_output: bool = False,
) -> int:
    """Handle CLI errors with consistent formatting and logging.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    error_context: dict[str, Any] = {
        "command": command,
        "error_type": type(error).__name__,
        "json_output": json_output,
    }
    cli_error = _map_error_to_cli_error(error, command, error_context)
    _log_error(error, command, cli_error, error_context)
    _output_error(cli_error, error, command, json_output=json_output)

    return cli_error.exit_code


def _map_error_to_cli_error(
    error: BaseException,
    command: str,
    error_context: dict[str, Any],
) -> CliError:
    """Map specific exception types to CLI errors."""
    if isinstance(error, CliError):
        error_context["error_code"] = error.code.value
        return error

    if isinstance(error, TTLVaultError):
        error_context["error_code"] = error.code.value

    if isinstance(error, LockContentionError):
        return create_cli_error(
            message=f"Cache is busy, retry later: {error.message}",
            command=command,
            original_error=error,
            exit_code=CLIDefaults.EXIT_RETRY,
            code=ErrorCode.LOCK_CONTENTION,
        )

    if isinstance(error, EvictionError):
        return create_cli_error(
            message=f"Eviction failed: {error.message}",
            command=command,
            original_error=error,
            code=ErrorCode.EVICTION_FAILED,
        )

    if isinstance(error, DomainError):
        return create_cli_error(
            message=f"Cache error: {error.message}",
            command=command,
            original_error=error,
            code=error.code,
        )

    if isinstance(error, ApplicationError):
        return create_cli_error(
            message=f"Application error: {error.message}",
            command=command,
            original_error=error,
            code=error.code,
        )

    if isinstance(error, InfrastructureError):
        return create_cli_error(
            message=f"Storage error: {error.message}",
            command=command,
            original_error=error,
            code=error.code,
        )

    if isinstance(error, KeyboardInterrupt):
        error_context["interrupt_type"] = "user_interrupt"
        return create_cli_error(
            message="Command interrupted by user",
            command=command,
            original_error=error,
            exit_code=CLIDefaults.EXIT_INTERRUPTED,
        )

    error_context["error_category"] = "unexpected"
    return create_cli_error(
        message=f"Unexpected error: {error}",
        command=command,
        original_error=error,
    )


def _log_error(
    error: BaseException,
    command: str,
    cli_error: CliError,
    error_context: dict[str, Any],
) -> None:
    """Log the error with structured context."""
    if isinstance(error, (KeyboardInterrupt, LockContentionError)):
        logger.warning(
            "Command %s stopped: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
        )
    elif isinstance(error, TTLVaultError):
        logger.error(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            extra={"context": error_context, "error_code": cli_error.code.value},
        )
    else:
        logger.exception(
            "CLI error in %s: %s",
            command,
            cli_error.message,
            extra={"context": error_context},
        )


def _output_error(
    cli_error: CliError,
    error: BaseException,
    command: str,
    *,
    json_output: bool,
) -> None:
    """Output error message in appropriate format."""
    if json_output:
        output = format_json_output(
            success=False,
            command=command,
            errors=[cli_error.message],
            data={
                "error_code": cli_error.code.value,
                "error_type": type(error).__name__,
                "exit_code": cli_error.exit_code,
            },
        )
        typer.echo(output.decode("utf-8"))
    else:
        sys.stderr.write(f"Error: {cli_error.message}\n")


def handle_cli_errors(command_name: str) -> Callable[[F], F]:
    """Decorator that turns exceptions raised by a handler into exit codes.

    Args:
        command_name: Command name reported in error output

    Example:
        >>> @handle_cli_errors("get")
        ... def handle_get_command(key: str) -> int:
        ...     ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except typer.Exit:
                raise
            except (Exception, KeyboardInterrupt) as e:
                context = get_cli_context()
                return handle_cli_error(
                    e,
                    command_name,
                    json_output=context.json_output,
                )

        return wrapper  # type: ignore[return-value]

    return decorator
