from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger

logger = get_logger()

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class BaseScraperService:
    """
    Shared HTTP client wrapper for every upstream fetch (feeds, listings,
    social APIs, proxy routes).

    Performs exactly one GET per `fetch` call. Retrying is the caller's
    business: the feed orchestrator falls back to the next tier instead.
    """

    def __init__(
        self,
        *,
        user_agent: str = BROWSER_USER_AGENT,
        timeout_s: Optional[float] = None,
        verify_tls: Optional[bool] = None,
        max_concurrency: int = 5,
    ) -> None:
        """
        Args:
            user_agent: User-Agent string for HTTP requests
            timeout_s: Request timeout in seconds (defaults to UPSTREAM_TIMEOUT_S)
            verify_tls: Verify upstream certificates (defaults to UPSTREAM_VERIFY_TLS)
            max_concurrency: Maximum concurrent requests through this client
        """
        self.user_agent = user_agent
        self.timeout_s = timeout_s if timeout_s is not None else settings.UPSTREAM_TIMEOUT_S
        self.verify_tls = verify_tls if verify_tls is not None else settings.UPSTREAM_VERIFY_TLS
        self.max_concurrency = max(1, max_concurrency)
        self._client: Optional[httpx.AsyncClient] = None
        self._sem = asyncio.Semaphore(self.max_concurrency)

    async def __aenter__(self) -> "BaseScraperService":
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={"User-Agent": self.user_agent, "Accept": HTML_ACCEPT},
            follow_redirects=True,
            verify=self.verify_tls,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()

    async def fetch(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """
        Fetch a URL once, under the concurrency limit.

        Raises:
            httpx.HTTPStatusError: on a non-2xx response
            httpx.HTTPError: on transport failures and timeouts
        """
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")

        async with self._sem:
            response = await self._client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response

    async def fetch_html(self, url: str) -> str:
        response = await self.fetch(url)
        return response.text
