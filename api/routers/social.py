from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from services.social_service import (
    SocialUpstreamError,
    fetch_facebook_posts,
    fetch_youtube_videos,
)

router = APIRouter(tags=["social"])


@router.get("/youtube/videos")
async def youtube_videos(
    page_token: Optional[str] = Query(None, alias="pageToken"),
    max_results: Optional[int] = Query(None, alias="maxResults"),
):
    try:
        payload: Dict[str, Any] = await fetch_youtube_videos(page_token=page_token, max_results=max_results)
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail={"success": False, "error": str(exc)})
    except SocialUpstreamError as exc:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})
    return payload


@router.get("/facebook/semperadmin")
async def facebook_semperadmin():
    try:
        return await fetch_facebook_posts()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail={"success": False, "error": str(exc)})
    except SocialUpstreamError as exc:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})
