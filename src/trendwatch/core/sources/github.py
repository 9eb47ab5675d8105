"""
GitHub repository search source.

Queries the search API for recently created repositories sorted by stars
and returns the raw repository objects.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

import orjson

from trendwatch.core.backends.base import RequestSpec

from .base import Item, PageSource, SourceError

if TYPE_CHECKING:
    from trendwatch.core.backends.base import Backend
    from trendwatch.core.config.models import GitHubConfig


logger = logging.getLogger(__name__)


class GitHubSearchSource(PageSource):
    """Paginated repository search.

    The query is computed once, at construction, so every page of a feed
    asks for the same result window.
    """

    def __init__(
        self,
        config: GitHubConfig,
        backend: Backend,
        today: date | None = None,
        owns_backend: bool = True,
    ) -> None:
        """Initialize the source.

        Args:
            config: Search settings
            backend: Backend for making requests
            today: Reference date for the created-since window
            owns_backend: Close the backend when the source is closed
        """
        self.config = config
        self.backend = backend
        self.query = config.build_query(today)
        self._owns_backend = owns_backend

    @property
    def name(self) -> str:
        return "github"

    def build_request(self, page: int) -> RequestSpec:
        """Build the request for one page."""
        headers = {
            "Accept": "application/vnd.github+json",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        return RequestSpec(
            url=self.config.api_url,
            headers=headers,
            params={
                "q": self.query,
                "sort": self.config.sort.value,
                "order": self.config.order.value,
                "page": str(page),
                "per_page": str(self.config.per_page),
            },
            source_name=self.name,
            page=page,
        )

    async def fetch_items(self, page: int) -> list[Item]:
        request = self.build_request(page)
        result = await self.backend.fetch(request)

        try:
            payload: Any = result.json()
        except orjson.JSONDecodeError as e:
            raise SourceError(f"Response is not valid JSON: {e}", page=page) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise SourceError("Response has no 'items' list", page=page)

        if payload.get("incomplete_results"):
            logger.debug("Search results for page %d are incomplete", page)

        return payload["items"]

    async def close(self) -> None:
        if self._owns_backend:
            await self.backend.close()
