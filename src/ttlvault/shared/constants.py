"""
TTLVault Constants Module

Centralized constants for the TTLVault package. Table names, engine
pragmas, facade validation rules and CLI strings live here so that no
magic values are scattered across the codebase.
"""

from __future__ import annotations

import re
from typing import Final

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE


class Application:
    """Application metadata."""

    NAME = "ttlvault"
    VERSION = "0.1.0"
    ENV_PREFIX = "TTLVAULT_"


class Tables:
    """Logical and physical table names."""

    KEY_VALUE_PAIRS: Final = "key_value_pairs"
    EXPIRY_KEY_PAIRS: Final = "expiry_key_pairs"

    # Physical B-trees backing the expiry index
    EXPIRY_FORWARD: Final = "expiry_key_pairs_by_key"
    EXPIRY_REVERSE: Final = "expiry_key_pairs_by_expiry"

    SCHEMA_VERSION: Final = "schema_version"

    # The environment holds exactly two logical tables
    MAX_TABLES: Final = 2


class Storage:
    """Storage engine defaults."""

    DB_FILENAME = "ttlvault.db"
    DEFAULT_PATHNAME = "."
    JOURNAL_MODE = "WAL"
    SYNCHRONOUS = "NORMAL"
    BUSY_TIMEOUT_MS = 5000
    SCHEMA_VERSION = 1


class Cache:
    """Cache facade defaults and validation rules."""

    DEFAULT_TTL = BASE_HOUR
    UNBOUNDED = -1
    KEY_PATTERN_TEXT = r"^[a-zA-Z0-9_-]+$"
    KEY_PATTERN = re.compile(KEY_PATTERN_TEXT)
    VALUE_ENCODING = "utf-8"


class CLIDefaults:
    """CLI default values and exit codes."""

    EXIT_SUCCESS = 0
    EXIT_ERROR = 1
    EXIT_NOT_FOUND = 1
    EXIT_RETRY = 75
    EXIT_INTERRUPTED = 130


class CLIHelp:
    """CLI help texts."""

    APP_NAME = Application.NAME
    APP_DESCRIPTION = "Persistent key-value cache with per-entry time-to-live."
    VERSION_TEXT = "ttlvault {version}"
    PATH_HELP = "Directory holding the cache database."
    CONFIG_HELP = "Path to a TOML configuration file."
    TTL_HELP = "Time-to-live in seconds (defaults to the configured TTL)."
    TOUCH_HELP = "Extend the entry's lifetime to this many seconds from now."
    LIMIT_HELP = "Stop after listing this many keys."
    MAX_COUNT_HELP = "Evict at most this many entries (negative means unbounded)."
