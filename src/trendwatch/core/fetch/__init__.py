"""Fetch utilities - page fetcher outcomes and retries."""

from .page_fetcher import (
    Failed,
    Ok,
    Outcome,
    PageFetcher,
    RateLimited,
    dedupe_items,
    item_id,
)
from .retries import RetryConfig, retry_async

__all__ = [
    "Failed",
    "Ok",
    "Outcome",
    "PageFetcher",
    "RateLimited",
    "RetryConfig",
    "dedupe_items",
    "item_id",
    "retry_async",
]
