"""Configuration loading and validation."""

from .models import (
    # Enums
    SortField,
    SortOrder,
    # Config models
    AppConfig,
    GitHubConfig,
    BackendConfig,
    FeedConfig,
    RetryPolicyConfig,
    DisplayConfig,
    LoggingConfig,
)
from .loader import (
    ConfigError,
    load_app_config,
    validate_config_file,
    write_default_config,
)

__all__ = [
    # Enums
    "SortField",
    "SortOrder",
    # Config models
    "AppConfig",
    "GitHubConfig",
    "BackendConfig",
    "FeedConfig",
    "RetryPolicyConfig",
    "DisplayConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_config_file",
    "write_default_config",
]
