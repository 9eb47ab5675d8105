"""Shared test fixtures for TrendWatch tests."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import pytest

from trendwatch.core.feed.controller import FeedController
from trendwatch.core.fetch.page_fetcher import PageFetcher
from trendwatch.core.scheduler.clock import ManualClock
from trendwatch.core.sources.base import PageSource


START_MS = 1_700_000_000_000.0


def repos(*ids: int) -> list[dict[str, Any]]:
    """Minimal repository records with the given ids."""
    return [
        {
            "id": repo_id,
            "name": f"repo{repo_id}",
            "full_name": f"user/repo{repo_id}",
            "stargazers_count": repo_id * 10,
        }
        for repo_id in ids
    ]


def ids_of(items) -> list[Any]:
    return [item["id"] for item in items]


class ScriptedSource(PageSource):
    """Page source answering from a per-page script.

    Each page maps to a queue of results (lists of items or exceptions to
    raise). Results are consumed in order; the last one repeats. Pages
    without a script return no items. Set ``gate`` to hold fetches open;
    ``in_flight`` and ``max_in_flight`` count overlapping calls.
    """

    def __init__(self) -> None:
        self.scripts: dict[int, deque[Any]] = {}
        self.calls: list[int] = []
        self.gate: asyncio.Event | None = None
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "scripted"

    def script(self, page: int, *results: Any) -> "ScriptedSource":
        self.scripts[page] = deque(results)
        return self

    async def fetch_items(self, page: int):
        self.calls.append(page)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
        finally:
            self.in_flight -= 1

        queue = self.scripts.get(page)
        if not queue:
            return []
        result = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return list(result)

    async def close(self) -> None:
        self.closed = True


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next real suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> ManualClock:
    """Simulated clock starting at a fixed epoch time."""
    return ManualClock(start=START_MS)


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def fetcher(source, clock) -> PageFetcher:
    return PageFetcher(source, clock=clock)


@pytest.fixture
async def controller(fetcher, clock):
    """Feed controller on simulated time, closed after the test."""
    feed = FeedController(fetcher, clock=clock, tick_interval=1.0)
    yield feed
    await feed.close()
