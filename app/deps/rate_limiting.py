# app/deps/rate_limiting.py
"""
FastAPI dependencies for rate limiting, keyed by client IP address.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException
from starlette.requests import Request

from app.core.logging import get_logger
from app.core.rate_limiting import check_and_increment_rate_limit

logger = get_logger()


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    then falls back to direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First entry is the original client
        ip = forwarded_for.split(",")[0].strip()
        if ip:
            return ip

    if request.client:
        return request.client.host

    return "unknown"


def require_rate_limit_factory(action: str, limit: Optional[int] = None, window_seconds: Optional[int] = None):
    """
    Factory function that returns a rate limit dependency for a specific action.

    Usage:
        @router.post("/endpoint")
        async def my_endpoint(
            _rate_limit: None = Depends(require_rate_limit_factory("ai_summary")),
        ):
            ...
    """
    async def _rate_limit_check(request: Request) -> None:
        ip_address = get_client_ip(request)
        allowed, retry_after = check_and_increment_rate_limit(ip_address, action, limit, window_seconds)
        if not allowed:
            logger.warning("rate_limit_exceeded", action=action, ip=ip_address, retry_after=retry_after)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for action '{action}'. Please try again later.",
                headers={"Retry-After": str(retry_after)},
            )
        return None

    return _rate_limit_check
