"""
HTTP Backend implementation using httpx.

Provides async HTTP fetching with:
- Persistent connection pooling
- Rate limit detection (GitHub reset headers, Retry-After)
- Blocked response classification
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import httpx

from trendwatch import __app_name__, __version__

from .base import (
    Backend,
    BlockedError,
    FetchError,
    FetchResult,
    RateLimitError,
    RequestSpec,
)


DEFAULT_USER_AGENT = f"{__app_name__}/{__version__}"

# Status codes that indicate refusal without a reset hint
BLOCKED_STATUS_CODES = {401, 403, 406, 418, 451}

RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests.

    Features:
    - Persistent connection pooling
    - Automatic redirect following
    - One outbound call per fetch, no internal retries
    - Rate limit detection
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str | None = None,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            timeout: Default request timeout in seconds
            user_agent: Custom user agent
            default_headers: Default headers for all requests
            transport: Custom httpx transport (mock transports in tests)
        """
        self.timeout = timeout
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.default_headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            **(default_headers or {}),
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                ),
            )
        return self._client

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """Raise RateLimitError when the response signals an exhausted budget.

        GitHub answers 403 with ``X-RateLimit-Reset`` (epoch seconds) once
        the budget is spent; generic APIs answer 429 with ``Retry-After``.
        GitHub sends the reset header on every response, so a 403 counts
        only when ``X-RateLimit-Remaining`` is 0 or absent.
        """
        status = response.status_code
        if status not in (403, 429):
            return

        reset_seconds = _parse_float(response.headers.get(RATE_LIMIT_RESET_HEADER))
        remaining = _parse_float(response.headers.get(RATE_LIMIT_REMAINING_HEADER))

        if status == 403 and (reset_seconds is None or (remaining is not None and remaining > 0)):
            return

        if reset_seconds is not None:
            reset_at = reset_seconds * 1000.0
        else:
            retry_after = _parse_float(response.headers.get("Retry-After"))
            reset_at = time.time() * 1000.0 + (retry_after or 0.0) * 1000.0

        raise RateLimitError(
            "Rate limit exceeded",
            url=str(response.url),
            status_code=status,
            reset_at=reset_at,
        )

    def _check_status(self, response: httpx.Response) -> None:
        """Raise for non-2xx responses that are not rate limits."""
        if response.status_code in BLOCKED_STATUS_CODES:
            raise BlockedError(
                f"Request blocked with status {response.status_code}",
                url=str(response.url),
                status_code=response.status_code,
            )
        if not response.is_success:
            raise FetchError(
                f"Server returned status {response.status_code}",
                url=str(response.url),
                status_code=response.status_code,
            )

    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL once.

        Args:
            request: Request specification

        Returns:
            FetchResult with response data
        """
        if request.method.upper() != "GET":
            raise FetchError(f"Unsupported method: {request.method}", url=request.url)

        client = await self._ensure_client()
        headers = {**self.default_headers, **request.headers}
        timeout = request.timeout if request.timeout is not None else self.timeout

        start_time = datetime.now(timezone.utc)
        try:
            response = await client.get(
                request.url,
                headers=headers,
                params=request.params or None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout: {e}", url=request.url, cause=e) from e
        except httpx.TransportError as e:
            raise FetchError(f"Transport error: {e}", url=request.url, cause=e) from e

        elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        self._check_rate_limit(response)
        self._check_status(response)

        return FetchResult(
            url=str(response.url),
            status_code=response.status_code,
            body=response.text,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
