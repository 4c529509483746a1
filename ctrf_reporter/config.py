"""Configuration for the CTRF reporter."""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

log = logging.getLogger(__name__)

ENV_PREFIX = "CTRF_"
CONFIG_FILE_ENV = "CTRF_CONFIG"
DEFAULT_CONFIG_FILE = Path("ctrf.yaml")


class ConfigError(Exception):
    """Raised when the reporter configuration cannot be loaded."""


class CtrfConfig(BaseModel):
    """Configuration for report output and environment metadata."""

    report_path: Path = Path("ctrf-report.json")
    max_message_length: int = Field(default=500, ge=0)
    tool_version: str | None = None
    calculate_startup_duration: bool = False

    report_name: str | None = None
    app_name: str | None = None
    app_version: str | None = None
    build_name: str | None = None
    build_number: str | None = None
    build_url: str | None = None
    repository_name: str | None = None
    repository_url: str | None = None
    commit: str | None = None
    branch_name: str | None = None
    os_platform: str | None = None
    os_release: str | None = None
    os_version: str | None = None
    test_environment: str | None = None


def load_config(
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> CtrfConfig:
    """Load configuration from file, environment and explicit overrides.

    Precedence is explicit override > environment > file > defaults.

    Args:
        config_file: YAML file to read; falls back to ``$CTRF_CONFIG`` and then
            to ``ctrf.yaml`` in the working directory when it exists
        overrides: Field values that win over every other source; ``None``
            values are ignored
        environ: Environment to read ``CTRF_*`` variables from
            (default: ``os.environ``)

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file cannot be read or parsed, or a value is invalid

    """
    environ = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    values.update(_read_config_file(config_file, environ))
    values.update(_read_environment(environ))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return CtrfConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid CTRF configuration: {e}") from e


def _read_config_file(
    config_file: Path | None, environ: Mapping[str, str]
) -> Mapping[str, Any]:
    if config_file is None and (env_file := environ.get(CONFIG_FILE_ENV)):
        config_file = Path(env_file)

    if config_file is None:
        if not DEFAULT_CONFIG_FILE.is_file():
            return {}
        config_file = DEFAULT_CONFIG_FILE

    try:
        data = yaml.safe_load(config_file.read_text())
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_file}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")

    log.debug("Loaded CTRF config from %s", config_file)
    return data


def _read_environment(environ: Mapping[str, str]) -> Mapping[str, str]:
    values: dict[str, str] = {}
    for name in CtrfConfig.model_fields:
        if (value := environ.get(f"{ENV_PREFIX}{name.upper()}")) is not None:
            values[name] = value
    return values
