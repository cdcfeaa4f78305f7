"""Configuration for ferry.

Settings come from three layers, later layers winning:

1. an optional YAML file (``--config`` or ``FERRY_CONFIG``),
2. ``FERRY_*`` environment variables,
3. explicit CLI options.

Example ``ferry.yaml``::

    region: eu-west-1
    environment: stag
    log_level: INFO
    rollout_timeout_seconds: 900
    rollout_poll_seconds: 15

Example:
    >>> settings = load_settings(Path("ferry.yaml"), region="us-east-1")
    >>> settings.region
    'us-east-1'
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ferry.environment import Environment, EnvironmentName
from ferry.errors import ConfigurationError

logger = structlog.get_logger(__name__)

CONFIG_ENV_VAR = "FERRY_CONFIG"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class FerrySettings(BaseSettings):
    """Runtime settings for the ferry CLI.

    Environment Variables:
        FERRY_REGION: Default AWS region for all commands.
        FERRY_ENVIRONMENT: Default environment (dev, stag, test, prod).
        FERRY_ENVIRONMENT_INDEX: Default environment stack index.
        FERRY_LOG_LEVEL: Minimum log level.
        FERRY_LOG_JSON: Emit JSON logs when true.
        FERRY_ROLLOUT_TIMEOUT_SECONDS: Default rollout wait window.
        FERRY_ROLLOUT_POLL_SECONDS: Default rollout poll interval.
        FERRY_OPERATOR: Operator identity recorded in logs.
    """

    model_config = SettingsConfigDict(
        env_prefix="FERRY_",
        extra="ignore",
    )

    region: str | None = Field(
        default=None,
        description="Default AWS region",
    )
    environment: str = Field(
        default=EnvironmentName.DEVELOPMENT.medium,
        description="Default environment name or alias",
    )
    environment_index: int = Field(
        default=1,
        ge=1,
        le=255,
        description="Default environment stack index",
    )
    log_level: LogLevel = Field(
        default="WARNING",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )
    rollout_timeout_seconds: int = Field(
        default=1800,
        gt=0,
        description="Seconds per rollout wait window",
    )
    rollout_poll_seconds: int = Field(
        default=10,
        gt=0,
        description="Seconds between rollout status polls",
    )
    operator: str | None = Field(
        default=None,
        description="Operator identity; defaults to $USER",
    )

    @field_validator("environment")
    @classmethod
    def _known_environment(cls, value: str) -> str:
        EnvironmentName.parse(value)
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def resolved_environment(self) -> Environment:
        return Environment.parse(self.environment, index=self.environment_index)

    def resolved_operator(self) -> str:
        return self.operator or os.environ.get("USER") or "unknown"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(str(path), f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(str(path), f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def load_settings(config_path: Path | None = None, **overrides: Any) -> FerrySettings:
    """Load settings from YAML, environment and explicit overrides.

    Args:
        config_path: YAML file to read. Falls back to $FERRY_CONFIG when None.
        **overrides: Explicit values (usually CLI options); None values are ignored.

    Returns:
        Validated FerrySettings.

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid.
    """
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])

    file_values: dict[str, Any] = {}
    source = "environment"
    if config_path is not None:
        file_values = _read_yaml(config_path)
        source = str(config_path)

    try:
        from_env = FerrySettings().model_dump(exclude_unset=True)
        merged = {
            **file_values,
            **from_env,
            **{k: v for k, v in overrides.items() if v is not None},
        }
        settings = FerrySettings(**merged)
    except ValidationError as e:
        raise ConfigurationError(source, str(e)) from e

    logger.debug(
        "settings_loaded",
        source=source,
        region=settings.region,
        environment=settings.environment,
    )
    return settings


__all__ = ["CONFIG_ENV_VAR", "FerrySettings", "load_settings"]
