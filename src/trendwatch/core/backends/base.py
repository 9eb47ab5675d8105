"""
Backend base classes and data structures.

Defines the interface contract for transport backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson


@dataclass
class RequestSpec:
    """Specification for an HTTP request."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None

    # Metadata for logging/debugging
    source_name: str | None = None
    page: int | None = None


@dataclass
class FetchResult:
    """Result of a fetch operation."""

    url: str
    status_code: int
    body: str
    headers: dict[str, str]

    elapsed_ms: float
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            orjson.JSONDecodeError: If the body is not valid JSON
        """
        return orjson.loads(self.body)


class Backend(ABC):
    """Abstract base class for transport backends.

    A backend performs exactly one outbound request per ``fetch`` call.
    Retry policy belongs to the caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        pass

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL and return the response.

        Args:
            request: Request specification

        Returns:
            FetchResult with response data

        Raises:
            RateLimitError: When the server reports an exhausted call budget
            FetchError: On any other transport or server failure
        """
        pass

    async def close(self) -> None:
        """Clean up backend resources."""
        pass

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class FetchError(BackendError):
    """Error during fetch operation."""
    pass


class RateLimitError(BackendError):
    """Rate limit hit (403 with reset header, or 429).

    ``reset_at`` is the absolute time, in epoch milliseconds, after which
    the server accepts calls again.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = 429,
        reset_at: float | None = None,
    ):
        super().__init__(message, url, status_code=status_code)
        self.reset_at = reset_at


class BlockedError(BackendError):
    """Request refused without a rate-limit signal (403 and friends)."""
    pass
