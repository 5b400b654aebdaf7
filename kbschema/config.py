"""
Configuration for kbschema.

All settings can be given as environment variables prefixed with
``KBSCHEMA_`` (e.g. ``KBSCHEMA_LOG_LEVEL=DEBUG``).
"""

from __future__ import annotations

import logging
from typing import Literal

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """kbschema configuration."""

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["text", "json"] = Field(default="text")

    # Definition files compiled by the CLI; empty means the built-in catalog
    definition_paths: list[str] = Field(default_factory=list)

    inheritance_conflicts: Literal["warn", "error", "last_wins"] = Field(
        default="warn",
        description="Policy when two parents define the same property differently",
    )
    require_rid_hash: bool = Field(
        default=False, description="Record identifiers given to the CLI must start with '#'"
    )

    model_config = {"env_prefix": "KBSCHEMA_"}


def configure_logging(settings: Settings) -> None:
    """Configure root logging based on settings.

    Args:
        settings: kbschema settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
