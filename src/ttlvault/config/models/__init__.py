"""Configuration models package."""

from ttlvault.config.models.cache_settings import CacheSettings
from ttlvault.config.models.logging_settings import LoggingSettings
from ttlvault.config.models.settings import Settings
from ttlvault.config.models.storage_settings import StorageSettings

__all__ = [
    "CacheSettings",
    "LoggingSettings",
    "Settings",
    "StorageSettings",
]
