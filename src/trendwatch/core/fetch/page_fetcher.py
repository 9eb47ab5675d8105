"""
Page fetcher - one page request turned into a typed outcome.

The fetcher calls its page source exactly once per ``fetch_page``, drops
items already seen, and converts every source failure into an outcome
instead of raising. Retry policy lives with the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AbstractSet, Hashable, Union

from trendwatch.core.backends.base import RateLimitError
from trendwatch.core.scheduler.clock import LoopClock

if TYPE_CHECKING:
    from trendwatch.core.scheduler.clock import Clock
    from trendwatch.core.sources.base import Item, PageSource


logger = logging.getLogger(__name__)

# Cooldown used when a source reports a rate limit without a reset time
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass(frozen=True)
class Ok:
    """Page fetched; ``new_items`` excludes ids already known."""

    new_items: tuple[Item, ...]
    page_number: int


@dataclass(frozen=True)
class RateLimited:
    """Server call budget exhausted until ``reset_at_epoch_millis``."""

    page_number: int
    reset_at_epoch_millis: float


@dataclass(frozen=True)
class Failed:
    """Any other transport or server failure."""

    page_number: int
    message: str


Outcome = Union[Ok, RateLimited, Failed]


def item_id(item: Item, id_field: str = "id") -> Hashable | None:
    """Return the identifier of an item, or None when it has none."""
    try:
        value = item[id_field]
    except (KeyError, TypeError):
        return None
    if value is None or isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return value


def dedupe_items(
    items: list[Item] | tuple[Item, ...],
    known_ids: AbstractSet[Hashable],
    id_field: str = "id",
) -> tuple[Item, ...]:
    """Drop in-page duplicates (first occurrence wins), then known ids.

    Items without a usable identifier are dropped.
    """
    seen: set[Hashable] = set()
    unique: list[Item] = []

    for item in items:
        key = item_id(item, id_field)
        if key is None:
            logger.warning("Dropping item without '%s' field", id_field)
            continue
        if key in seen:
            continue
        seen.add(key)
        if key not in known_ids:
            unique.append(item)

    return tuple(unique)


class PageFetcher:
    """Fetch single pages from a ``PageSource`` as typed outcomes."""

    def __init__(
        self,
        source: PageSource,
        *,
        id_field: str = "id",
        clock: Clock | None = None,
        default_cooldown: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        """Initialize the fetcher.

        Args:
            source: Page source to call
            id_field: Item key holding the identifier
            clock: Clock used when a rate limit carries no reset time
            default_cooldown: Seconds of cooldown in that case
        """
        self.source = source
        self.id_field = id_field
        self.clock = clock or LoopClock()
        self.default_cooldown = default_cooldown

    async def fetch_page(self, page_number: int, known_ids: AbstractSet[Hashable]) -> Outcome:
        """Fetch one page.

        Args:
            page_number: 1-based page number
            known_ids: Identifiers already held by the caller

        Returns:
            Ok, RateLimited or Failed

        Raises:
            ValueError: If page_number is not a positive integer
        """
        if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
            raise ValueError(f"page_number must be a positive integer, got {page_number!r}")

        logger.debug("Fetching page %d from %s", page_number, self.source.name)

        try:
            raw_items = await self.source.fetch_items(page_number)
        except RateLimitError as e:
            reset_at = e.reset_at
            if reset_at is None:
                reset_at = self.clock.now() + self.default_cooldown * 1000.0
            logger.warning(
                "Page %d rate limited until %d",
                page_number,
                int(reset_at),
                extra={"source": self.source.name, "page": page_number},
            )
            return RateLimited(page_number=page_number, reset_at_epoch_millis=reset_at)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(
                "Page %d failed: %s",
                page_number,
                message,
                extra={"source": self.source.name, "page": page_number},
            )
            return Failed(page_number=page_number, message=message)

        new_items = dedupe_items(list(raw_items), known_ids, self.id_field)
        logger.debug(
            "Page %d: %d items, %d new",
            page_number,
            len(raw_items),
            len(new_items),
        )
        return Ok(new_items=new_items, page_number=page_number)
