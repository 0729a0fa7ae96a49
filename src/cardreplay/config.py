"""
Configuration for cardreplay.

Configuration lives in a YAML file validated by Pydantic models. Every
section is optional; command-line flags override file values.

Example:
    replay:
      validate_states: true
      stop_at_step: 40
    sanitize:
      enabled: true
      placeholder_component: Unknown
    logging:
      level: INFO
      format: rich
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field


class ReplaySettings(BaseModel):
    """Defaults for replay sessions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    validate_states: bool = Field(
        default=True,
        description="Compare replayed state with recorded after-snapshots",
    )
    step_by_step: bool = Field(
        default=False,
        description="Drive the replay one event at a time",
    )
    stop_at_step: int | None = Field(
        default=None,
        ge=0,
        description="Stop bulk replay after this many steps",
    )


class SanitizeSettings(BaseModel):
    """How raw logs are cleaned before replay."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(
        default=True,
        description="Run the sanitizer before replay",
    )
    placeholder_component: str = Field(
        default="Unknown",
        min_length=1,
        description="Component name given to events that lack one",
    )


class LoggingSettings(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["rich", "plain"] = "rich"


class ReplayConfig(BaseModel):
    """Top-level configuration file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    sanitize: SanitizeSettings = Field(default_factory=SanitizeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_config(path: Path | str) -> ReplayConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated ReplayConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return ReplayConfig.model_validate(data or {})


def load_config_from_string(content: str) -> ReplayConfig:
    """Load configuration from a YAML string."""
    data = yaml.safe_load(content)
    return ReplayConfig.model_validate(data or {})
