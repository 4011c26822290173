"""
Reusable Typer Options Module

This module centralizes the option definitions shared by the CLI
callback and commands. Each option is an Annotated alias so commands
declare a parameter as ``verbose: VerboseOption = 0``.

The options include:
- verbose: Verbosity level (count-based)
- log_level: Logging level (enum-based)
- json_output: JSON output mode (flag-based)
- path / config: Cache directory and configuration file
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from ttlvault.cli.common.context import LogLevel
from ttlvault.shared.constants import CLIHelp

# Verbose option - count-based for multiple -v flags
VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Enable verbose output (equivalent to --log-level DEBUG).",
    ),
]


LogLevelOption = Annotated[
    LogLevel,
    typer.Option(
        "--log-level",
        case_sensitive=False,
        help="Set the logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Default: WARNING.",
    ),
]


JsonOutputOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Enable machine-readable JSON output instead of human-readable format.",
    ),
]


# Version option - for main app only
VersionOption = Annotated[
    bool,
    typer.Option(
        "--version",
        "-V",
        help="Show version information and exit.",
    ),
]


PathOption = Annotated[
    Optional[Path],
    typer.Option(
        "--path",
        "-p",
        help=CLIHelp.PATH_HELP,
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
]


ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=CLIHelp.CONFIG_HELP,
        dir_okay=False,
    ),
]
