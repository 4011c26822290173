"""TTLVault Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

import logging
from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ttlvault.config.models.cache_settings import CacheSettings
from ttlvault.config.models.logging_settings import LoggingSettings
from ttlvault.config.models.storage_settings import StorageSettings
from ttlvault.shared.constants import Application

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings facade providing unified configuration access.

    Values come from keyword arguments (a TOML file), then environment
    variables such as TTLVAULT_CACHE__DEFAULT_TTL, then defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix=Application.ENV_PREFIX,
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    cache: CacheSettings = Field(default_factory=CacheSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from TOML file; environment variables fill keys it omits."""

        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to TOML file."""

        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(exclude_none=True)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)
        logger.debug("Saved configuration to %s", file_path)
