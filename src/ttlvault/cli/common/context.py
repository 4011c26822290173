"""
CLI Context Management Module

This module manages global CLI state using a Pydantic model and a
ContextVar, so every Typer command reads the same parsed options.

The context includes:
- verbose: Verbosity level (int, count-based)
- log_level: Logging level (str, enum-based)
- json_output: JSON output mode (bool)
- path: Cache directory override
- config_path: TOML configuration file
"""

from __future__ import annotations

import contextvars
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """
    CLI context model for managing global state.

    Attributes:
        verbose: Verbosity level (0 = normal, 1+ = verbose)
        log_level: Logging level
        json_output: Whether to output in JSON format
        path: Cache directory overriding the configured one
        config_path: TOML configuration file to load
    """

    verbose: int = Field(default=0, ge=0, description="Verbosity level")
    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Logging level")
    json_output: bool = Field(default=False, description="Output JSON")
    path: Path | None = Field(default=None, description="Cache directory")
    config_path: Path | None = Field(default=None, description="Configuration file")

    def is_verbose(self) -> bool:
        """Check if verbose mode is enabled."""
        return self.verbose > 0

    def get_effective_log_level(self) -> str:
        """
        Get the effective log level after applying verbose override.

        Returns:
            str: DEBUG when verbose, otherwise the configured level
        """
        if self.is_verbose():
            return LogLevel.DEBUG.value
        return self.log_level.value


# Global context variable for thread-safe access
cli_context_var: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def get_cli_context() -> CliContext:
    """
    Get the current CLI context, or a default one if none has been set.
    """
    context = cli_context_var.get()
    if context is None:
        return CliContext()
    return context


def set_cli_context(context: CliContext) -> None:
    """Set the current CLI context."""
    cli_context_var.set(context)
