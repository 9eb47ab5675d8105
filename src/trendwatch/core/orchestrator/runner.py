"""
Feed runner orchestrator.

Drives a ``FeedController`` the way an infinite-scroll consumer would:
load the next page whenever the feed is idle, wait out rate-limit
cooldowns, retry transport failures with backoff, and stop at the page
limit or when the feed runs dry.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from trendwatch.core.feed.state import FeedState, FeedStatus
from trendwatch.core.fetch.retries import RetryConfig, retry_async
from trendwatch.core.logging import get_contextual_logger

if TYPE_CHECKING:
    import httpx

    from trendwatch.core.config.models import AppConfig
    from trendwatch.core.feed.controller import FeedController
    from trendwatch.core.scheduler.clock import Clock


class StopReason:
    """Why a run ended."""

    MAX_PAGES = "max_pages"
    END_OF_FEED = "end_of_feed"
    EMPTY = "empty"
    FAILED = "failed"


class PageLoadFailed(Exception):
    """A page failed and was not recovered by the controller."""

    def __init__(self, page: int, message: str):
        super().__init__(f"Page {page} failed: {message}")
        self.page = page
        self.message = message


@dataclass
class RunStats:
    """Statistics for a feed run."""

    pages_loaded: int = 0
    pages_failed: int = 0
    empty_pages: int = 0
    rate_limits: int = 0
    items_total: int = 0
    stop_reason: str | None = None

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    @property
    def ok(self) -> bool:
        return self.stop_reason != StopReason.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pages_loaded": self.pages_loaded,
            "pages_failed": self.pages_failed,
            "empty_pages": self.empty_pages,
            "rate_limits": self.rate_limits,
            "items_total": self.items_total,
            "stop_reason": self.stop_reason,
            "errors": list(self.errors),
            "duration_seconds": self.duration_seconds,
        }


class FeedRunner:
    """Loads pages from a controller until a stop condition holds."""

    def __init__(
        self,
        controller: FeedController,
        *,
        max_pages: int = 10,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        run_id: str | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            controller: Feed controller to drive
            max_pages: Stop after this many pages loaded in this run
            retry_config: Backoff for transport failures
            sleep: Awaitable sleep used between retries
            run_id: Identifier attached to log records
        """
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")

        self.controller = controller
        self.max_pages = max_pages
        self.retry_config = copy.copy(retry_config or RetryConfig())
        self.retry_config.retry_exceptions = (PageLoadFailed,)
        self._sleep = sleep
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self.log = get_contextual_logger(
            "runner",
            source=controller.fetcher.source.name,
            run_id=self.run_id,
        )

        self._stats = RunStats()
        self._last_cooldown: float | None = None

    def _on_state(self, state: FeedState) -> None:
        if state.cooldown_until is not None and state.cooldown_until != self._last_cooldown:
            self._stats.rate_limits += 1
        self._last_cooldown = state.cooldown_until

    async def _load_page(self, attempt: int) -> None:
        controller = self.controller
        before = len(controller.items)

        if attempt == 1 and controller.status is not FeedStatus.FAILED:
            await controller.load_next()
        else:
            await controller.retry()

        # Rate limits resolve here: the controller retries on its own
        state = await controller.wait_settled()

        if state.status is FeedStatus.FAILED:
            self._stats.pages_failed += 1
            raise PageLoadFailed(state.last_attempted_page, state.error or "unknown error")

        if len(state.items) == before:
            self._stats.empty_pages += 1

    async def run(self) -> RunStats:
        """Execute the run.

        Returns:
            RunStats with execution statistics
        """
        stats = self._stats = RunStats()
        controller = self.controller
        unsubscribe = controller.subscribe(self._on_state)
        self.log.info("Feed run started at page %d", controller.page)

        try:
            while True:
                if stats.pages_loaded >= self.max_pages:
                    stats.stop_reason = StopReason.MAX_PAGES
                    break
                if controller.end_of_feed:
                    stats.stop_reason = StopReason.END_OF_FEED
                    break
                if stats.pages_loaded and not controller.has_more_heuristic:
                    stats.stop_reason = StopReason.EMPTY
                    break

                try:
                    await retry_async(
                        self._load_page,
                        config=self.retry_config,
                        sleep=self._sleep,
                    )
                except PageLoadFailed as e:
                    stats.errors.append(str(e))
                    stats.stop_reason = StopReason.FAILED
                    self.log.error("Giving up: %s", e)
                    break

                stats.pages_loaded += 1
        finally:
            unsubscribe()
            stats.items_total = len(controller.items)
            stats.finished_at = datetime.now(timezone.utc)

        self.log.info(
            "Feed run finished (%s): %d pages, %d items",
            stats.stop_reason,
            stats.pages_loaded,
            stats.items_total,
        )
        return stats


def build_github_controller(
    config: AppConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Clock | None = None,
) -> FeedController:
    """Wire backend, source, fetcher and controller from app configuration.

    Close the returned controller and then ``controller.fetcher.source``
    when done; the source owns the HTTP backend.

    Args:
        config: Application configuration
        transport: Custom httpx transport (mock transports in tests)
        clock: Clock for the fetcher and controller

    Returns:
        Ready-to-use FeedController
    """
    from trendwatch.core.backends.http_backend import HttpBackend
    from trendwatch.core.feed.controller import FeedController
    from trendwatch.core.fetch.page_fetcher import PageFetcher
    from trendwatch.core.scheduler.clock import LoopClock
    from trendwatch.core.sources.github import GitHubSearchSource

    clock = clock or LoopClock()
    backend = HttpBackend(
        timeout=config.backend.timeout_seconds,
        user_agent=config.backend.user_agent,
        transport=transport,
    )
    source = GitHubSearchSource(config.github, backend)
    fetcher = PageFetcher(source, id_field=config.feed.id_field, clock=clock)
    return FeedController(
        fetcher,
        clock=clock,
        tick_interval=config.feed.tick_interval_seconds,
        empty_page_limit=config.feed.empty_page_limit,
    )
