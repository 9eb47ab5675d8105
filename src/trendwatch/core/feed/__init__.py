"""Feed controller - paginated, deduplicated, rate-limit aware item feed."""

from .controller import FeedController, Listener
from .state import (
    INITIAL_STATE,
    RATE_LIMIT_MESSAGE,
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

__all__ = [
    "FeedController",
    "Listener",
    "INITIAL_STATE",
    "RATE_LIMIT_MESSAGE",
    "ClearError",
    "FeedState",
    "FeedStatus",
    "FetchResolved",
    "FetchStarted",
    "Reset",
    "cooldown_seconds_remaining",
    "has_more_heuristic",
    "is_blocked",
    "is_cooldown_active",
    "is_end_of_feed",
    "known_ids",
    "reduce",
]
