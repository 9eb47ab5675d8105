"""Tests for the feed runner."""

import asyncio

import pytest

from conftest import START_MS, ids_of, repos
from trendwatch.core.backends.base import FetchError, RateLimitError
from trendwatch.core.fetch.retries import RetryConfig, retry_async
from trendwatch.core.orchestrator.runner import FeedRunner, RunStats, StopReason


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_runner(controller, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def factory(max_pages=10, max_attempts=3):
        return FeedRunner(
            controller,
            max_pages=max_pages,
            retry_config=RetryConfig(max_attempts=max_attempts, min_wait=0, max_wait=0, jitter=False),
            sleep=fake_sleep,
            run_id="test",
        )

    return factory


class TestStopConditions:
    async def test_stops_at_max_pages(self, make_runner, controller, source):
        source.script(1, repos(1, 2)).script(2, repos(3, 4)).script(3, repos(5))

        stats = await make_runner(max_pages=2).run()

        assert stats.stop_reason == StopReason.MAX_PAGES
        assert stats.pages_loaded == 2
        assert stats.items_total == 4
        assert source.calls == [1, 2]
        assert controller.page == 3

    async def test_stops_at_end_of_feed(self, make_runner, source):
        source.script(1, repos(1))

        stats = await make_runner().run()

        assert stats.stop_reason == StopReason.END_OF_FEED
        assert stats.pages_loaded == 3
        assert stats.empty_pages == 2
        assert source.calls == [1, 2, 3]

    async def test_duplicate_only_page_counts_as_empty(self, make_runner, source):
        source.script(1, repos(1, 2)).script(2, repos(1, 2)).script(3, repos(3))

        stats = await make_runner(max_pages=3).run()

        assert stats.empty_pages == 1
        assert stats.items_total == 3

    async def test_stops_when_first_page_empty(self, make_runner, source):
        stats = await make_runner().run()

        assert stats.stop_reason == StopReason.EMPTY
        assert stats.pages_loaded == 1
        assert stats.items_total == 0

    async def test_second_run_continues_from_current_page(self, make_runner, source):
        source.script(1, repos(1)).script(2, repos(2)).script(3, repos(3))

        await make_runner(max_pages=1).run()
        stats = await make_runner(max_pages=2).run()

        assert source.calls == [1, 2, 3]
        assert stats.pages_loaded == 2
        assert stats.items_total == 3

    async def test_rejects_invalid_max_pages(self, controller):
        with pytest.raises(ValueError):
            FeedRunner(controller, max_pages=0)

    async def test_leaves_shared_retry_config_untouched(self, controller):
        shared = RetryConfig(retry_exceptions=(FetchError,))

        runner = FeedRunner(controller, retry_config=shared)

        assert shared.retry_exceptions == (FetchError,)
        assert runner.retry_config is not shared
        assert runner.retry_config.max_attempts == shared.max_attempts


class TestFailures:
    async def test_transport_failure_retried(self, make_runner, source, sleeps):
        source.script(1, repos(1)).script(2, FetchError("down"), repos(2))

        stats = await make_runner(max_pages=2).run()

        assert stats.ok
        assert stats.stop_reason == StopReason.MAX_PAGES
        assert stats.pages_failed == 1
        assert source.calls == [1, 2, 2]
        assert len(sleeps) == 1

    async def test_gives_up_after_max_attempts(self, make_runner, controller, source):
        source.script(1, FetchError("down"))

        stats = await make_runner(max_attempts=3).run()

        assert not stats.ok
        assert stats.stop_reason == StopReason.FAILED
        assert stats.pages_failed == 3
        assert stats.errors == ["Page 1 failed: down"]
        assert source.calls == [1, 1, 1]
        assert controller.error == "down"

    async def test_rate_limit_waited_out(self, make_runner, controller, source, clock):
        source.script(1, RateLimitError("limited", reset_at=START_MS + 3_000), repos(1))

        task = asyncio.create_task(make_runner(max_pages=1).run())
        for _ in range(50):
            await asyncio.sleep(0)
            if task.done():
                break
            clock.advance(1)
        stats = await task

        assert stats.ok
        assert stats.rate_limits == 1
        assert stats.pages_loaded == 1
        assert source.calls == [1, 1]
        assert ids_of(controller.items) == [1]


class TestRunStats:
    def test_to_dict(self):
        stats = RunStats(pages_loaded=2, items_total=5, stop_reason=StopReason.MAX_PAGES)
        data = stats.to_dict()

        assert data["pages_loaded"] == 2
        assert data["items_total"] == 5
        assert data["stop_reason"] == "max_pages"
        assert data["duration_seconds"] is None

    def test_failed_run_not_ok(self):
        assert not RunStats(stop_reason=StopReason.FAILED).ok


class TestRetryAsync:
    async def test_passes_attempt_number(self):
        attempts = []

        async def flaky(attempt):
            attempts.append(attempt)
            if attempt < 3:
                raise FetchError("again")
            return "done"

        async def no_sleep(seconds):
            pass

        config = RetryConfig(max_attempts=5, min_wait=0, max_wait=0, jitter=False)
        assert await retry_async(flaky, config=config, sleep=no_sleep) == "done"
        assert attempts == [1, 2, 3]

    async def test_only_listed_exceptions_retried(self):
        calls = []

        async def broken(attempt):
            calls.append(attempt)
            raise KeyError("nope")

        config = RetryConfig(max_attempts=5, retry_exceptions=(FetchError,))
        with pytest.raises(KeyError):
            await retry_async(broken, config=config)
        assert calls == [1]
