"""Configuration schema and loading for deferred result processing.

Settings are validated by Pydantic and loaded by Dynaconf, with precedence:
    1. Environment variables (DEFERRED_*) - highest priority
    2. Settings YAML file
    3. Defaults from the Pydantic schema - lowest priority

The cell itself takes no configuration beyond its constructor arguments.
What is configurable is the surrounding machinery: the reference
coordinator's default timeout and the logging output.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Timeout applied when a cell carries no timeout of its own. Request
# processing containers fall back to 30 seconds when nothing is configured.
DEFAULT_TIMEOUT_MS = 30_000

# Pattern for ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class CoordinatorSettings(BaseModel):
    """Settings for the reference AsyncRequestCoordinator.

    Attributes:
        default_timeout_ms: Timeout for cells constructed without one.
            0 disables the timer entirely.
        timer_thread_prefix: Name prefix for timeout timer threads
    """

    model_config = {"frozen": True, "extra": "forbid"}

    default_timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, ge=0, description="Default request timeout in milliseconds")
    timer_thread_prefix: str = Field("deferred-timeout", min_length=1, description="Timer thread name prefix")


class LoggingSettings(BaseModel):
    """Logging output settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class DeferredResultSettings(BaseModel):
    """Root settings model.

    Unknown top-level keys are ignored (Dynaconf may surface its own
    bookkeeping keys); the nested sections reject unknown fields.
    """

    model_config = {"frozen": True}

    coordinator: CoordinatorSettings = Field(default_factory=CoordinatorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(f"Required environment variable '{var_name}' is not set")

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path) -> DeferredResultSettings:
    """Load settings from a YAML file with environment variable overrides.

    Environment variable format: DEFERRED_COORDINATOR__DEFAULT_TIMEOUT_MS
    for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated DeferredResultSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
        ValueError: If a referenced environment variable has no value or default
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="DEFERRED",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase top-level keys; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys and not k.endswith("_FOR_DYNACONF")
    }
    raw_config = _expand_env_vars(raw_config)

    return DeferredResultSettings(**raw_config)
