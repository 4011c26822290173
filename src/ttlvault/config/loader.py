"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for the Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ttlvault.config.models.settings import Settings
from ttlvault.shared.errors import ApplicationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config/ttlvault.toml"),
    Path("ttlvault.toml"),
)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking pattern to ensure thread-safety
    while minimizing lock overhead.
    """

    def __init__(self) -> None:
        self._instance: Settings | None = None
        self._lock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it if necessary."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Reload the global settings instance from configuration files."""
        with self._lock:
            self._instance = load_settings(config_path)

        return self._instance


def _load_env_file(env_file: Path = Path(".env")) -> None:
    """Load environment variables from a .env file if one exists."""
    if env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML configuration file or the environment.

    Args:
        config_path: Optional path to TOML configuration file. If None,
            the default locations are tried before falling back to
            environment variables and defaults.

    Returns:
        Settings instance loaded from the specified source

    Raises:
        ApplicationError: If the file is missing, unreadable or invalid
    """
    _load_env_file()

    path: Path | None = Path(config_path) if config_path else None
    if path is None:
        path = next((p for p in DEFAULT_CONFIG_PATHS if p.exists()), None)

    try:
        if path is not None:
            return Settings.from_toml_file(path)
        # Fall back to environment variables
        return Settings()
    except FileNotFoundError as e:
        raise ApplicationError(
            code=ErrorCode.CONFIG_MISSING,
            message=str(e),
            context=ErrorContext(operation="load_settings", file_path=str(path)),
            original_error=e,
        ) from e
    except (ValidationError, ValueError, OSError) as e:
        raise ApplicationError(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=f"Invalid configuration: {e}",
            context=ErrorContext(
                operation="load_settings",
                file_path=str(path) if path is not None else None,
            ),
            original_error=e,
        ) from e


# Global loader instance
_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload the global settings instance from configuration files."""
    return _loader.reload_config(config_path)


__all__ = [
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
]
