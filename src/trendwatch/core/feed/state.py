"""
Feed state, actions and the reducer.

``FeedState`` is immutable; every transition goes through
``reduce(state, action)`` and yields a new value. Selectors derive
read-only views such as the cooldown countdown.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Hashable, Mapping, Union

from trendwatch.core.fetch.page_fetcher import Failed, Ok, RateLimited, item_id


RATE_LIMIT_MESSAGE = "rate limit exceeded"

# Consecutive empty pages after which the feed is considered exhausted
DEFAULT_EMPTY_PAGE_LIMIT = 2


class FeedStatus(str, Enum):
    """Load status of a feed."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class FeedState:
    """Cumulative feed state.

    Attributes:
        items: Items in arrival order, unique by id
        page: Next page number to request
        last_attempted_page: Page of the most recent fetch attempt
        status: Load status
        error: Last human-readable error message
        cooldown_until: Epoch ms after which retry is permitted
        consecutive_empty_pages: Successful pages in a row that added nothing
    """

    items: tuple[Mapping[str, Any], ...] = ()
    page: int = 1
    last_attempted_page: int = 1
    status: FeedStatus = FeedStatus.IDLE
    error: str | None = None
    cooldown_until: float | None = None
    consecutive_empty_pages: int = 0


INITIAL_STATE = FeedState()


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class FetchStarted:
    page_number: int


@dataclass(frozen=True)
class FetchResolved:
    """A page fetcher outcome arrived."""

    outcome: Union[Ok, RateLimited, Failed]
    id_field: str = field(default="id")


@dataclass(frozen=True)
class ClearError:
    pass


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[FetchStarted, FetchResolved, ClearError, Reset]


# =============================================================================
# Reducer
# =============================================================================


def _merge_items(
    items: tuple[Mapping[str, Any], ...],
    new_items: tuple[Mapping[str, Any], ...],
    id_field: str,
) -> tuple[Mapping[str, Any], ...]:
    """Append new items, skipping ids already present."""
    seen = {item_id(item, id_field) for item in items}
    merged = list(items)
    for item in new_items:
        key = item_id(item, id_field)
        if key is None or key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return tuple(merged)


def _resolve(state: FeedState, action: FetchResolved) -> FeedState:
    outcome = action.outcome

    if isinstance(outcome, Ok):
        items = _merge_items(state.items, outcome.new_items, action.id_field)
        added = len(items) - len(state.items)
        return replace(
            state,
            items=items,
            page=state.page + 1,
            last_attempted_page=outcome.page_number,
            status=FeedStatus.SUCCEEDED,
            error=None,
            cooldown_until=None,
            consecutive_empty_pages=0 if added else state.consecutive_empty_pages + 1,
        )

    if isinstance(outcome, RateLimited):
        return replace(
            state,
            last_attempted_page=outcome.page_number,
            status=FeedStatus.FAILED,
            error=RATE_LIMIT_MESSAGE,
            cooldown_until=outcome.reset_at_epoch_millis,
        )

    if isinstance(outcome, Failed):
        return replace(
            state,
            last_attempted_page=outcome.page_number,
            status=FeedStatus.FAILED,
            error=outcome.message,
            cooldown_until=None,
        )

    raise TypeError(f"Unknown outcome: {outcome!r}")


def reduce(state: FeedState, action: Action) -> FeedState:
    """Apply an action and return the next state.

    Args:
        state: Current state
        action: Action to apply

    Returns:
        New state (``state`` itself when nothing changes)
    """
    if isinstance(action, FetchStarted):
        return replace(state, status=FeedStatus.LOADING)

    if isinstance(action, FetchResolved):
        return _resolve(state, action)

    if isinstance(action, ClearError):
        return replace(state, error=None, cooldown_until=None, status=FeedStatus.IDLE)

    if isinstance(action, Reset):
        return INITIAL_STATE

    raise TypeError(f"Unknown action: {action!r}")


# =============================================================================
# Selectors
# =============================================================================


def cooldown_seconds_remaining(state: FeedState, now: float) -> int:
    """Whole seconds until the cooldown ends, rounded up; 0 when none."""
    if state.cooldown_until is None:
        return 0
    return max(0, math.ceil((state.cooldown_until - now) / 1000.0))


def is_cooldown_active(state: FeedState, now: float) -> bool:
    """Whether ``cooldown_until`` is set and still in the future."""
    return state.cooldown_until is not None and state.cooldown_until > now


def is_blocked(state: FeedState) -> bool:
    """Failed with a rate-limit cooldown recorded."""
    return state.status is FeedStatus.FAILED and state.cooldown_until is not None


def has_more_heuristic(state: FeedState) -> bool:
    """Optimistic "more pages likely exist" signal.

    True as soon as any item has been loaded; it never turns false on its
    own. See ``is_end_of_feed`` for a terminating signal.
    """
    return len(state.items) > 0


def is_end_of_feed(state: FeedState, empty_page_limit: int = DEFAULT_EMPTY_PAGE_LIMIT) -> bool:
    """True after ``empty_page_limit`` successful pages in a row added nothing."""
    return state.consecutive_empty_pages >= empty_page_limit


def known_ids(state: FeedState, id_field: str = "id") -> frozenset[Hashable]:
    """Identifiers of every item held."""
    return frozenset(
        key for key in (item_id(item, id_field) for item in state.items) if key is not None
    )
