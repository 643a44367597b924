"""Pydantic models for application configuration.

Configuration priority (lowest to highest):
1. Code defaults (defined in model Field defaults)
2. config.yaml file
3. Environment variables
4. CLI arguments
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppConfig(BaseModel):
    """Top-level configuration for the attachment store."""

    model_config = ConfigDict(extra="forbid")

    # The hosting application's private data directory
    user_data_dir: str | None = None
    log_level: str = "INFO"
    thumbnail_size: int = Field(default=200, gt=0)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level
