"""
Configuration for cellmap.

Uses pydantic-settings for environment variable loading. All settings
can be overridden with CELLMAP_* environment variables:

    CELLMAP_LOG_LEVEL=DEBUG
    CELLMAP_LOG_FORMAT=json
    CELLMAP_TABLE_NAME_PREFIX=staging
    CELLMAP_REPLACE_LINEAR_THRESHOLD=100

Per-entity-type configuration (families, associations, attribute
registry) is not here; it lives on EntitySchema.

Invariants:
    - get_settings() builds the settings once per process
    - reset_settings() is for tests only
"""

from __future__ import annotations

import logging
import threading
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings

_settings: Settings | None = None
_settings_lock = threading.Lock()


class Settings(BaseSettings):
    """cellmap configuration loaded from environment."""

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["text", "json"] = Field(default="text", description="text or json")

    # Tables
    table_name_prefix: str | None = Field(
        default=None, description="Prefix joined to every table name with '-'"
    )

    # Collection proxies
    replace_linear_threshold: int = Field(
        default=100,
        ge=0,
        description="Below this combined size replace() uses linear containment checks",
    )

    model_config = {"env_prefix": "CELLMAP_"}

    def table_name(self, name: str) -> str:
        """Full table name for a base name."""
        if self.table_name_prefix:
            return f"{self.table_name_prefix}-{name}"
        return name


def get_settings() -> Settings:
    """Get the process-wide settings, building them on first use."""
    global _settings
    with _settings_lock:
        if _settings is None:
            _settings = Settings()
        return _settings


def reset_settings() -> None:
    """Drop the process-wide settings (tests only)."""
    global _settings
    with _settings_lock:
        _settings = None


def setup_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings.

    Args:
        settings: Settings to use; defaults to get_settings()
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
