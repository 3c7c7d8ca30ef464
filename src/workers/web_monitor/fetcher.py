"""
Page fetching with browser TLS impersonation.

``curl_cffi`` presents a Chrome fingerprint, which gets past most naive bot
walls. Non-2xx responses are returned, not raised: a 403 challenge page is
still a capture the signal models need to see.
"""

from __future__ import annotations

import logging

from curl_cffi.requests import AsyncSession as CurlSession

from core.config import settings
from workers.web_monitor.models import FetchResult

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}


class PageFetcher:
    """
    One impersonating HTTP session reused across the pages of a crawl job.

    Use as an async context manager. ``fetch`` raises
    ``curl_cffi.requests.RequestsError`` on transport failures (DNS, TLS,
    timeout); the caller decides whether that aborts anything.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
        self._session: CurlSession | None = None

    async def __aenter__(self) -> "PageFetcher":
        self._session = CurlSession(
            headers=DEFAULT_HEADERS,
            timeout=self.timeout,
            impersonate="chrome120",
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str) -> FetchResult:
        if self._session is None:
            raise RuntimeError("PageFetcher used outside of 'async with'")
        response = await self._session.get(url, allow_redirects=True)
        logger.debug("Fetched %s → %d (%d bytes)", url, response.status_code, len(response.text or ""))
        return FetchResult(url=url, html=response.text or "", http_status=response.status_code)
