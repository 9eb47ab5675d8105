"""
Configuration loader for YAML files.

Loads and validates configuration from YAML files into Pydantic models.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig


DEFAULT_CONFIG_PATH = Path("configs/app.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Top level of {path} must be a mapping",
            path=path,
            details=f"got {type(data).__name__}",
        )
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in string values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, str):
        def replacer(match: re.Match[str]) -> str:
            return os.environ.get(match.group(1), match.group(2) or "")

        return _ENV_PATTERN.sub(replacer, data)
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration from YAML file.

    Args:
        path: Path to app.yaml (default: configs/app.yaml)
        expand_env: Whether to expand environment variables

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)

    # If file doesn't exist, return defaults
    if not path.exists():
        return AppConfig()

    data = _load_yaml_file(path)

    if expand_env:
        data = _expand_env_vars(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details=str(e),
        ) from e


def validate_config_file(path: Path | str) -> list[str]:
    """Validate a configuration file without using it.

    Returns:
        List of validation error messages (empty if valid)
    """
    path = Path(path)
    if not path.exists():
        return [f"File not found: {path}"]

    try:
        data = _load_yaml_file(path)
    except ConfigError as e:
        return [f"{e}: {e.details}" if e.details else str(e)]

    try:
        AppConfig.model_validate(_expand_env_vars(data))
    except ValidationError as e:
        return [
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
    return []


DEFAULT_APP_CONFIG = """\
# TrendWatch Configuration

# Repository search
github:
  api_url: https://api.github.com/search/repositories
  created_since_days: 7
  sort: stars
  order: desc
  per_page: 30
  token: ${GITHUB_TOKEN:-}

# Transport
backend:
  timeout_seconds: 30

# Feed controller
feed:
  tick_interval_seconds: 1.0
  max_pages: 10
  empty_page_limit: 2
  id_field: id

# Retry of transport failures
retry:
  max_attempts: 3
  min_wait: 1
  max_wait: 30
  multiplier: 2
  jitter: true

# Columns shown by `trendwatch feed run`
display:
  show_avatar: true
  show_tags: true
  show_description: true
  show_stars: true

# Logging settings
logging:
  level: INFO
  file: logs/trendwatch.log
  json_format: true
  rich_console: true
"""


def write_default_config(path: Path | str = DEFAULT_CONFIG_PATH) -> Path:
    """Write the default app.yaml."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_APP_CONFIG, encoding="utf-8")
    return path
