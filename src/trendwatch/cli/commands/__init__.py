"""CLI command modules."""

from . import config, feed

__all__ = [
    "config",
    "feed",
]
