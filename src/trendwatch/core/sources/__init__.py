"""Page sources - opaque page-number-to-items functions."""

from .base import CallableSource, Item, PageFunction, PageSource, SourceError
from .github import GitHubSearchSource

__all__ = [
    "CallableSource",
    "GitHubSearchSource",
    "Item",
    "PageFunction",
    "PageSource",
    "SourceError",
]
