from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

import httpx

from app.config import settings
from app.core.logging import get_logger
from services.base_scraper_service import BaseScraperService
from services.feed_adapters import describe_error

logger = get_logger()

ALNAV_YEAR_URL = "https://www.mynavyhr.navy.mil/References/Messages/ALNAV-{year}/"
NAVY_DIRECTIVES_URL = "https://www.secnav.navy.mil/doni/Directives/Forms/Secnav%20Current.aspx"


class InvalidProxyTargetError(ValueError):
    pass


@dataclass
class UpstreamPage:
    status_code: int
    url: str
    html: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.html is not None

    def error_body(self) -> dict:
        return {"error": self.error, "message": self.message, "url": self.url}


def target_hostname(url: str) -> str:
    """
    Raises:
        InvalidProxyTargetError: for anything that is not an absolute http(s) URL
    """
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise InvalidProxyTargetError(f"Invalid url: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidProxyTargetError("Invalid url: expected an absolute http(s) URL")
    return parsed.hostname.lower()


def is_allowed_domain(hostname: str, allowed: Optional[Iterable[str]] = None) -> bool:
    """Suffix match on a label boundary: `www.navy.mil` passes, `evilnavy.mil` does not."""
    host = hostname.lower().rstrip(".")
    for domain in allowed if allowed is not None else settings.PROXY_ALLOWED_DOMAINS:
        domain = domain.lower().strip(".")
        if host == domain or host.endswith("." + domain):
            return True
    return False


async def fetch_upstream_html(url: str, *, failure_label: str = "Failed to fetch data") -> UpstreamPage:
    """
    One GET with the browser User-Agent. Errors are returned, not raised: the
    status is the upstream's when it answered, 504 on timeout, 500 otherwise.
    """
    logger.info("upstream_proxy_fetch", url=url)
    try:
        async with BaseScraperService() as client:
            html = await client.fetch_html(url)
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
    except httpx.TimeoutException as exc:
        logger.warning("upstream_proxy_timeout", url=url)
        return UpstreamPage(504, url, error=failure_label, message=describe_error(exc))
    except httpx.HTTPError as exc:
        logger.warning("upstream_proxy_failed", url=url, error=describe_error(exc))
        return UpstreamPage(500, url, error=failure_label, message=describe_error(exc))
    else:
        return UpstreamPage(200, url, html=html)

    logger.warning("upstream_proxy_bad_status", url=url, status=status)
    return UpstreamPage(status, url, error=failure_label, message=f"Upstream responded with HTTP {status}")
