"""Tests for the page fetcher."""

import pytest

from conftest import START_MS, ids_of, repos
from trendwatch.core.backends.base import FetchError, RateLimitError
from trendwatch.core.fetch.page_fetcher import (
    Failed,
    Ok,
    PageFetcher,
    RateLimited,
    dedupe_items,
    item_id,
)


class TestDedupe:
    def test_first_occurrence_wins(self):
        items = [
            {"id": 1, "name": "first"},
            {"id": 2, "name": "other"},
            {"id": 1, "name": "second"},
        ]
        result = dedupe_items(items, frozenset())

        assert [item["name"] for item in result] == ["first", "other"]

    def test_filters_known_ids(self):
        result = dedupe_items(repos(1, 2, 3), frozenset({2}))
        assert ids_of(result) == [1, 3]

    def test_in_page_duplicate_of_known_id_dropped(self):
        result = dedupe_items(repos(2, 2, 4), frozenset({2}))
        assert ids_of(result) == [4]

    def test_string_ids(self):
        items = [{"id": "a"}, {"id": "b"}, {"id": "a"}]
        assert ids_of(dedupe_items(items, frozenset({"b"}))) == ["a"]

    def test_items_without_id_dropped(self):
        items = [{"name": "no id"}, {"id": None}, {"id": 3}]
        assert ids_of(dedupe_items(items, frozenset())) == [3]

    def test_custom_id_field(self):
        items = [{"node_id": "x"}, {"node_id": "x"}]
        assert len(dedupe_items(items, frozenset(), id_field="node_id")) == 1

    def test_item_id_rejects_unhashable_and_bool(self):
        assert item_id({"id": True}) is None
        assert item_id({"id": [1]}) is None
        assert item_id("not a mapping") is None


class TestFetchPage:
    async def test_ok_with_new_items(self, source, fetcher):
        source.script(1, repos(1, 2, 2, 3))

        outcome = await fetcher.fetch_page(1, frozenset({3}))

        assert isinstance(outcome, Ok)
        assert outcome.page_number == 1
        assert ids_of(outcome.new_items) == [1, 2]
        assert source.calls == [1]

    async def test_ok_may_be_empty(self, source, fetcher):
        source.script(2, repos(1, 2))

        outcome = await fetcher.fetch_page(2, frozenset({1, 2}))

        assert outcome == Ok(new_items=(), page_number=2)

    async def test_rate_limit_with_reset_time(self, source, fetcher):
        source.script(1, RateLimitError("limited", reset_at=1234567890000.0))

        outcome = await fetcher.fetch_page(1, frozenset())

        assert outcome == RateLimited(page_number=1, reset_at_epoch_millis=1234567890000.0)

    async def test_rate_limit_without_reset_uses_default_cooldown(self, source, clock):
        source.script(1, RateLimitError("limited"))
        fetcher = PageFetcher(source, clock=clock, default_cooldown=45)

        outcome = await fetcher.fetch_page(1, frozenset())

        assert outcome == RateLimited(page_number=1, reset_at_epoch_millis=START_MS + 45000)

    async def test_transport_failure(self, source, fetcher):
        source.script(4, FetchError("Transport error: connection refused"))

        outcome = await fetcher.fetch_page(4, frozenset())

        assert outcome == Failed(page_number=4, message="Transport error: connection refused")

    async def test_any_exception_becomes_failed(self, source, fetcher):
        source.script(1, ValueError())

        outcome = await fetcher.fetch_page(1, frozenset())

        assert outcome == Failed(page_number=1, message="ValueError")

    async def test_one_call_per_invocation(self, source, fetcher):
        source.script(1, FetchError("down"))

        await fetcher.fetch_page(1, frozenset())
        await fetcher.fetch_page(1, frozenset())

        assert source.calls == [1, 1]

    @pytest.mark.parametrize("page", [0, -1, 1.5, True, "2"])
    async def test_rejects_invalid_page_numbers(self, fetcher, page):
        with pytest.raises(ValueError):
            await fetcher.fetch_page(page, frozenset())
