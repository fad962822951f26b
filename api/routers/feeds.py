from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Path, Query

from app.models.feed_sources import get_all_feeds
from services.feed_orchestrator import FeedNotFoundError, fetch_feed

router = APIRouter(
    prefix="/feeds",
    tags=["feeds"],
)


@router.get("")
async def list_feeds() -> Dict[str, Any]:
    feeds = [
        {
            "key": feed.key,
            "name": feed.name,
            "feedType": feed.feed_type,
            "tiers": [tier.kind for tier in feed.tiers],
        }
        for feed in get_all_feeds()
    ]
    return {"success": True, "feeds": feeds}


@router.get("/{feed_id}")
async def get_feed_messages(
    feed_id: str = Path(..., description="Feed key from the registry, e.g. maradmin."),
    window_days: Optional[int] = Query(
        None,
        alias="windowDays",
        ge=0,
        description="Recency window in days; defaults to the feed's configured window.",
    ),
) -> Dict[str, Any]:
    try:
        result = await fetch_feed(feed_id, window_days=window_days)
    except FeedNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"success": False, "error": str(exc)})

    return {
        "success": True,
        "feedId": result.feed_id,
        "tierUsed": result.tier_used,
        "warnings": result.warnings,
        "count": len(result.messages),
        "messages": [m.model_dump(mode="json", by_alias=True) for m in result.messages],
    }
