"""HTTP client for conditional downloading of ICS feeds."""

from __future__ import annotations

import logging
from typing import Any, NoReturn, Optional, Union
from urllib.parse import urlparse

import httpx

from . import __version__
from .exceptions import FeedError, FeedNetworkError
from .models import FeedSource, FetchResult

logger = logging.getLogger(__name__)

# Fixed per-request timeout; a slow feed is retried on the next poll, not now.
FETCH_TIMEOUT_SECONDS = 10.0

DEFAULT_HEADERS = {
    "User-Agent": f"icsfeed/{__version__}",
    "Accept": "text/calendar, */*",
}

Validators = Union[FeedSource, dict[str, str], None]


def _raise_client_not_initialized() -> NoReturn:
    raise FeedError("HTTP client not initialized")


class FeedFetcher:
    """Async HTTP client performing conditional GETs against calendar feeds."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize feed fetcher.

        Args:
            client: Optional shared HTTP client; it is never closed by the fetcher
            timeout: Request timeout in seconds
        """
        self.client: Optional[httpx.AsyncClient] = client
        self._use_shared_client = client is not None
        self.timeout = timeout

        logger.debug("Feed fetcher initialized (shared_client: %s)", self._use_shared_client)

    async def __aenter__(self) -> FeedFetcher:
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_client(self) -> None:
        """Ensure HTTP client exists."""
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=DEFAULT_HEADERS,
            )
            self._use_shared_client = False

    async def close(self) -> None:
        """Close HTTP client if it's not shared."""
        if self.client is not None and not self._use_shared_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed feed HTTP client")
            self.client = None

    @staticmethod
    def validate_url(url: str) -> bool:
        """Return True for absolute http(s) URLs with a hostname."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)

    @staticmethod
    def get_conditional_headers(validators: Validators) -> dict[str, str]:
        """Build If-None-Match / If-Modified-Since headers from stored validators.

        Args:
            validators: A FeedSource, a mapping with ``etag``/``last_modified``, or None

        Returns:
            Dictionary of conditional headers
        """
        if validators is None:
            return {}
        if isinstance(validators, FeedSource):
            return validators.conditional_headers()

        headers = {}
        etag = validators.get("etag")
        last_modified = validators.get("last_modified") or validators.get("lastModified")
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def fetch(self, url: str, validators: Validators = None) -> FetchResult:
        """Download a feed, honoring previously stored validators.

        Args:
            url: Absolute http/https feed URL
            validators: Stored ETag / Last-Modified values, if any

        Returns:
            FetchResult that is UNCHANGED on 304, OK with the body on 2xx and
            FAILED with a reason for anything else. Never raises.
        """
        if not self.validate_url(url):
            logger.warning("Refusing to fetch invalid feed URL: %r", url)
            return FetchResult.failed("Invalid feed URL")

        try:
            response = await self._request(url, self.get_conditional_headers(validators))
        except FeedError as e:
            logger.warning("Fetch failed for %s: %s", url, e.message)
            return FetchResult.failed(e.message, e.status_code)

        if response.status_code == 304:
            logger.debug("Feed not modified (304): %s", url)
            return FetchResult.unchanged()

        body = response.text
        logger.debug("Fetched %s (%d bytes, HTTP %d)", url, len(body), response.status_code)

        if "BEGIN:VCALENDAR" not in body:
            logger.warning("Content from %s does not appear to be ICS", url)

        return FetchResult.ok(
            body,
            status_code=response.status_code,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
        )

    async def _request(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """Perform the GET and translate transport/status problems into FeedNetworkError."""
        await self._ensure_client()
        if self.client is None:
            _raise_client_not_initialized()

        try:
            response = await self.client.get(
                url, headers={**DEFAULT_HEADERS, **headers}, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise FeedNetworkError(f"Request timeout after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise FeedNetworkError(f"Network error: {e}") from e

        if response.status_code == 304 or 200 <= response.status_code < 300:
            return response

        raise FeedNetworkError(
            f"HTTP {response.status_code}: {response.reason_phrase}", response.status_code
        )
