"""
Pydantic configuration models for TrendWatch.

These models provide type-safe configuration with validation for:
- The GitHub search source
- Transport backend settings
- Feed controller timing and stop heuristics
- Consumer-side retry policy
- Display toggles and logging
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class SortField(str, Enum):
    """Sort keys accepted by the repository search API."""

    STARS = "stars"
    FORKS = "forks"
    HELP_WANTED_ISSUES = "help-wanted-issues"
    UPDATED = "updated"


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


# =============================================================================
# Source Configuration
# =============================================================================


class GitHubConfig(BaseModel):
    """Repository search settings."""

    api_url: str = Field(
        default="https://api.github.com/search/repositories",
        description="Search endpoint URL",
    )
    created_since_days: int = Field(
        default=7,
        ge=1,
        le=3650,
        description="Only repositories created within the last N days",
    )
    query: str | None = Field(
        default=None,
        description="Raw search query; overrides created_since_days when set",
    )
    sort: SortField = Field(
        default=SortField.STARS,
        description="Sort key",
    )
    order: SortOrder = Field(
        default=SortOrder.DESC,
        description="Sort direction",
    )
    per_page: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Items per page",
    )
    token: str | None = Field(
        default=None,
        description="API token (raises the rate limit budget)",
    )

    @field_validator("token")
    @classmethod
    def empty_token_is_none(cls, v: str | None) -> str | None:
        """Treat an empty token (unset env var) as no token."""
        if v is not None and not v.strip():
            return None
        return v

    def build_query(self, today: date | None = None) -> str:
        """Build the search query string."""
        if self.query:
            return self.query
        since = (today or date.today()) - timedelta(days=self.created_since_days)
        return f"created:>{since.isoformat()}"


# =============================================================================
# Backend Configuration
# =============================================================================


class BackendConfig(BaseModel):
    """Transport settings."""

    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    user_agent: str | None = Field(
        default=None,
        description="Custom user agent string",
    )


# =============================================================================
# Feed Configuration
# =============================================================================


class FeedConfig(BaseModel):
    """Feed controller and runner settings."""

    tick_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Cooldown countdown granularity",
    )
    max_pages: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum pages to load per run",
    )
    empty_page_limit: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Consecutive empty pages that mark the end of the feed",
    )
    id_field: str = Field(
        default="id",
        min_length=1,
        description="Item key holding the unique identifier",
    )


# =============================================================================
# Retry Configuration
# =============================================================================


class RetryPolicyConfig(BaseModel):
    """Consumer-side retry of transport failures."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Failures in a row before giving up",
    )
    min_wait: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum wait before a retry in seconds",
    )
    max_wait: float = Field(
        default=30.0,
        ge=0.0,
        description="Maximum wait before a retry in seconds",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier",
    )
    jitter: bool = Field(
        default=True,
        description="Add random jitter to wait times",
    )

    @field_validator("max_wait")
    @classmethod
    def max_wait_gte_min(cls, v: float, info: Any) -> float:
        """Ensure max wait is at least min wait."""
        min_wait = info.data.get("min_wait", 0.0)
        if v < min_wait:
            raise ValueError("max_wait must be >= min_wait")
        return v


# =============================================================================
# Display Configuration
# =============================================================================


class DisplayConfig(BaseModel):
    """Which repository fields the CLI shows."""

    show_avatar: bool = Field(default=True, description="Show owner login/avatar column")
    show_tags: bool = Field(default=True, description="Show language column")
    show_description: bool = Field(default=True, description="Show description column")
    show_stars: bool = Field(default=True, description="Show star count column")

    def toggle(self, name: str) -> "DisplayConfig":
        """Return a copy with one toggle flipped."""
        if name not in type(self).model_fields:
            raise ValueError(f"Unknown display setting: {name}")
        return self.model_copy(update={name: not getattr(self, name)})


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    retry: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
