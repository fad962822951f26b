from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.models.summaries import SummaryWriteRequest
from services.summary_cache_service import SummaryCache, get_summary_cache

router = APIRouter(tags=["summaries"])


@router.get("/summary/{message_key:path}")
async def get_summary(
    message_key: str,
    cache: SummaryCache = Depends(get_summary_cache),
) -> Dict[str, Any]:
    entry = cache.get(message_key)
    if entry is None:
        raise HTTPException(status_code=404, detail={"success": False, "error": "Summary not found"})
    return {"success": True, "summary": entry.summary, "timestamp": entry.timestamp}


@router.post("/summary")
async def put_summary(
    payload: SummaryWriteRequest,
    cache: SummaryCache = Depends(get_summary_cache),
):
    if not payload.message_key or not payload.summary:
        raise HTTPException(
            status_code=400,
            detail={"success": False, "error": "Missing required fields: messageKey and summary"},
        )
    stored = cache.put(payload.message_key, payload.summary, payload.message_type, payload.message_id)
    if not stored:
        return JSONResponse(status_code=500, content={"success": False, "error": "Failed to save summary"})
    return {"success": True}


@router.get("/summaries")
async def list_summaries(cache: SummaryCache = Depends(get_summary_cache)) -> Dict[str, Any]:
    entries = cache.all()
    return {
        "success": True,
        "count": len(entries),
        "summaries": {key: entry.model_dump(by_alias=True) for key, entry in entries.items()},
    }
