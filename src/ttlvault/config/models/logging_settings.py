"""Logging configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class LoggingSettings(BaseModel):
    """Logging configuration.

    This class manages the log level, optional JSON log file and console
    output style.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="JSON log file path")
    use_rich_console: bool = Field(
        default=True,
        description="Render console logs with rich instead of JSON",
    )

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Invalid log level: {value}"
            raise ValueError(msg)
        return level


__all__ = ["LoggingSettings"]
