from __future__ import annotations

import re
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import HTMLResponse, JSONResponse

from app.config import settings
from app.core.logging import get_logger
from services.upstream_proxy_service import (
    ALNAV_YEAR_URL,
    NAVY_DIRECTIVES_URL,
    InvalidProxyTargetError,
    UpstreamPage,
    fetch_upstream_html,
    is_allowed_domain,
    target_hostname,
)

logger = get_logger()

router = APIRouter(tags=["proxy"])

_YEAR_RE = re.compile(r"^\d{4}$")


def _render(page: UpstreamPage):
    if page.ok:
        return HTMLResponse(content=page.html, status_code=200)
    return JSONResponse(status_code=page.status_code, content=page.error_body())


@router.get("/alnav/{year}")
async def alnav_listing(year: str):
    if not _YEAR_RE.match(year):
        raise HTTPException(status_code=400, detail={"error": "Invalid year", "year": year})
    page = await fetch_upstream_html(
        ALNAV_YEAR_URL.format(year=year),
        failure_label="Failed to fetch ALNAV data",
    )
    return _render(page)


@router.get("/navy-directives")
async def navy_directives():
    page = await fetch_upstream_html(NAVY_DIRECTIVES_URL, failure_label="Failed to fetch SECNAV data")
    return _render(page)


@router.get("/proxy")
async def generic_proxy(url: Optional[str] = Query(None)):
    if not url:
        raise HTTPException(status_code=400, detail={"error": "Missing url parameter"})
    try:
        hostname = target_hostname(url)
    except InvalidProxyTargetError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc)})

    if not is_allowed_domain(hostname):
        logger.warning("proxy_domain_rejected", hostname=hostname)
        raise HTTPException(
            status_code=403,
            detail={"error": "Domain not allowed", "allowedDomains": list(settings.PROXY_ALLOWED_DOMAINS)},
        )

    return _render(await fetch_upstream_html(url))
