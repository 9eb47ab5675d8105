"""Orchestrator - feed run coordination and backoff."""

from .runner import (
    FeedRunner,
    PageLoadFailed,
    RunStats,
    StopReason,
    build_github_controller,
)

__all__ = [
    "FeedRunner",
    "PageLoadFailed",
    "RunStats",
    "StopReason",
    "build_github_controller",
]
