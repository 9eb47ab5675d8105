"""
Feed controller - pagination, dedup and rate-limit recovery.

Owns a ``FeedState`` and moves it only through ``reduce``. Network calls
go through a ``PageFetcher``; time goes through an injected ``Clock`` so
the cooldown countdown can run on simulated time.

Usage:
    async with FeedController(PageFetcher(source)) as feed:
        await feed.load_next()
        await feed.wait_settled()
        print(feed.items)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Coroutine, Mapping

from trendwatch.core.fetch.page_fetcher import Failed, RateLimited
from trendwatch.core.logging import get_logger

from .state import (
    DEFAULT_EMPTY_PAGE_LIMIT,
    INITIAL_STATE,
    Action,
    ClearError,
    FeedState,
    FeedStatus,
    FetchResolved,
    FetchStarted,
    Reset,
    cooldown_seconds_remaining,
    has_more_heuristic,
    is_blocked,
    is_cooldown_active,
    is_end_of_feed,
    known_ids,
    reduce,
)

if TYPE_CHECKING:
    from trendwatch.core.fetch.page_fetcher import Outcome, PageFetcher
    from trendwatch.core.scheduler.clock import Clock, TimerHandle


logger = get_logger("feed")

Listener = Callable[[FeedState], None]


class FeedController:
    """State machine over one paginated feed.

    Commands: ``load_next``, ``retry``, ``reset``, ``clear_error``.
    At most one fetch is in flight at a time; while a rate-limit cooldown
    is active no fetch is made, and the controller retries the blocked
    page by itself once the countdown reaches zero.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        clock: Clock | None = None,
        tick_interval: float = 1.0,
        empty_page_limit: int = DEFAULT_EMPTY_PAGE_LIMIT,
    ) -> None:
        """Initialize the controller.

        Args:
            fetcher: Page fetcher to request pages from
            clock: Time source and timer factory (wall clock by default)
            tick_interval: Seconds between cooldown countdown ticks
            empty_page_limit: Empty pages in a row that make ``end_of_feed`` true
        """
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")

        self.fetcher = fetcher
        self.clock = clock or fetcher.clock
        self.tick_interval = tick_interval
        self.empty_page_limit = empty_page_limit

        self._state = INITIAL_STATE
        self._listeners: list[Listener] = []
        self._timer: TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._inflight: asyncio.Task[Outcome] | None = None
        # Bumped by reset and close so results of fetches started earlier are dropped
        self._generation = 0
        self._settled = asyncio.Event()
        self._settled.set()
        self._closed = False

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def items(self) -> tuple[Mapping[str, Any], ...]:
        return self._state.items

    @property
    def status(self) -> FeedStatus:
        return self._state.status

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def page(self) -> int:
        return self._state.page

    @property
    def last_attempted_page(self) -> int:
        return self._state.last_attempted_page

    @property
    def cooldown_until(self) -> float | None:
        return self._state.cooldown_until

    @property
    def is_loading(self) -> bool:
        return self._state.status is FeedStatus.LOADING

    @property
    def is_blocked(self) -> bool:
        """Failed on a rate limit and waiting out the cooldown."""
        return is_blocked(self._state)

    @property
    def cooldown_seconds_remaining(self) -> int:
        return cooldown_seconds_remaining(self._state, self.clock.now())

    @property
    def has_more_heuristic(self) -> bool:
        return has_more_heuristic(self._state)

    @property
    def end_of_feed(self) -> bool:
        return is_end_of_feed(self._state, self.empty_page_limit)

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state)`` after every transition and cooldown tick.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Feed listener %r failed", listener)

    def _dispatch(self, action: Action) -> None:
        if self._closed:
            return
        self._state = reduce(self._state, action)
        if self.is_loading or self.is_blocked:
            self._settled.clear()
        else:
            self._settled.set()
        self._notify()

    # =========================================================================
    # Commands
    # =========================================================================

    async def load_next(self) -> bool:
        """Request the next page.

        No-op while a fetch is in flight, while the cooldown is active, or
        after a failure that has not been retried or cleared.

        Returns:
            True if a fetch was made and its result applied
        """
        self._ensure_open()
        state = self._state

        if state.status is FeedStatus.LOADING:
            logger.debug("load_next ignored: page %d already loading", state.page)
            return False
        if is_cooldown_active(state, self.clock.now()):
            logger.debug(
                "load_next ignored: cooling down for %ds",
                self.cooldown_seconds_remaining,
            )
            return False
        if state.status is FeedStatus.FAILED:
            logger.debug("load_next ignored: last attempt failed, retry required")
            return False

        return await self._fetch(state.page)

    async def retry(self) -> bool:
        """Clear the failure and fetch the last attempted page again.

        Only acts after a failure; the page that failed is fetched again
        rather than skipped.

        Returns:
            True if a fetch was made and its result applied
        """
        self._ensure_open()
        state = self._state

        if state.status is not FeedStatus.FAILED:
            logger.debug("retry ignored: status is %s", state.status.value)
            return False

        self._cancel_timer()
        self._dispatch(ClearError())
        logger.info("Retrying page %d", state.last_attempted_page)
        return await self._fetch(state.last_attempted_page)

    def clear_error(self) -> None:
        """Drop the error and any cooldown, returning to idle."""
        self._cancel_timer()
        self._dispatch(ClearError())

    def reset(self) -> None:
        """Return to the initial state from any status.

        A fetch still in flight is cancelled and its result discarded.
        """
        self._generation += 1
        self._cancel_timer()
        self._cancel_inflight()
        self._dispatch(Reset())
        logger.debug("Feed reset")

    # =========================================================================
    # Fetching
    # =========================================================================

    async def _fetch(self, page: int) -> bool:
        generation = self._generation
        self._dispatch(FetchStarted(page))

        try:
            stale = self._inflight
            if stale is not None and not stale.done():
                # A fetch cancelled by reset finishes before the next one starts
                await asyncio.wait([stale])
            if generation != self._generation:
                return False

            task = asyncio.get_running_loop().create_task(
                self.fetcher.fetch_page(page, known_ids(self._state, self.fetcher.id_field))
            )
            self._inflight = task
            outcome = await task
        except BaseException as e:
            if generation != self._generation:
                if isinstance(e, asyncio.CancelledError):
                    logger.debug("Fetch of page %d abandoned after reset or close", page)
                    return False
                raise
            # Cancelled or a fetcher bug; never leave the feed stuck in loading
            if self.is_loading:
                self._dispatch(
                    FetchResolved(Failed(page, str(e) or type(e).__name__), self.fetcher.id_field)
                )
            raise

        if generation != self._generation:
            logger.debug("Discarding result for page %d after reset", page)
            return False

        self._dispatch(FetchResolved(outcome, self.fetcher.id_field))

        if isinstance(outcome, RateLimited):
            logger.warning(
                "Rate limited on page %d, retrying in %ds",
                page,
                self.cooldown_seconds_remaining,
                extra={"page": page, "cooldown_until": outcome.reset_at_epoch_millis},
            )
            self._start_cooldown()
        elif isinstance(outcome, Failed):
            logger.warning("Page %d failed: %s", page, outcome.message, extra={"page": page})
        else:
            logger.info(
                "Page %d loaded: %d new items (%d total)",
                page,
                len(outcome.new_items),
                len(self._state.items),
                extra={"page": page},
            )

        return True

    # =========================================================================
    # Cooldown countdown
    # =========================================================================

    def _start_cooldown(self) -> None:
        self._cancel_timer()
        delay = self.tick_interval if self.cooldown_seconds_remaining > 0 else 0.0
        self._timer = self.clock.after(delay, self._tick)

    def _tick(self) -> None:
        self._timer = None
        if self._closed or not self.is_blocked:
            return

        remaining = self.cooldown_seconds_remaining
        self._notify()

        if remaining > 0:
            self._timer = self.clock.after(self.tick_interval, self._tick)
            return

        logger.info("Cooldown over, retrying page %d", self._state.last_attempted_page)
        self._spawn(self.retry())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Automatic retry failed", exc_info=task.exception())

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("FeedController is closed")

    async def wait_settled(self) -> FeedState:
        """Wait until nothing is loading and no cooldown is pending.

        Returns:
            The settled state
        """
        # An automatic retry passes through idle before it starts loading
        while True:
            await self._settled.wait()
            if self._closed or not (self.is_loading or self.is_blocked):
                return self._state

    async def join(self) -> None:
        """Wait for automatic retries spawned by the countdown."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel the countdown timer, the fetch in flight and any automatic retry.

        The state is left as it was; results arriving later are discarded.
        """
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._cancel_timer()

        tasks = list(self._tasks)
        if self._inflight is not None:
            tasks.append(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._inflight = None
        self._settled.set()

    async def __aenter__(self) -> "FeedController":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
