"""
Page source base class and interfaces.

A page source is the opaque ``page number -> items`` function the page
fetcher drives. It performs one outbound call per ``fetch_items`` and
raises on failure; classification into outcomes happens in the fetcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Sequence


Item = Mapping[str, Any]
PageFunction = Callable[[int], Awaitable[Sequence[Item]]]


class SourceError(Exception):
    """Page source returned a payload it cannot interpret."""

    def __init__(self, message: str, page: int | None = None):
        super().__init__(message)
        self.page = page


class PageSource(ABC):
    """Base class for paginated item sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Source identifier used in logs."""

    @abstractmethod
    async def fetch_items(self, page: int) -> Sequence[Item]:
        """Fetch one page of items.

        Args:
            page: 1-based page number

        Returns:
            Items in server order

        Raises:
            RateLimitError: When the upstream call budget is exhausted
            Exception: Any other failure
        """

    async def close(self) -> None:
        """Release source resources."""

    async def __aenter__(self) -> "PageSource":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class CallableSource(PageSource):
    """Adapts a plain ``async def fetch(page)`` function to ``PageSource``."""

    def __init__(self, func: PageFunction, name: str = "callable"):
        self._func = func
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def fetch_items(self, page: int) -> Sequence[Item]:
        return await self._func(page)
