from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from app.deps.rate_limiting import require_rate_limit_factory
from app.models.summaries import SummarizeRequest
from services.gemini_service import GeminiService

router = APIRouter(
    prefix="/gemini",
    tags=["ai"],
)


@router.post("/summarize")
async def summarize(
    payload: SummarizeRequest,
    _rate_limit: None = Depends(require_rate_limit_factory("ai_summary")),
) -> Dict[str, Any]:
    if not payload.content or not payload.content.strip():
        raise HTTPException(status_code=400, detail={"success": False, "error": "Missing required field: content"})
    try:
        service = GeminiService()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail={"success": False, "error": str(exc)})

    result = await service.summarize(payload.content, payload.message_type)
    body: Dict[str, Any] = {"success": True, "summary": result.summary}
    if result.fallback:
        body["fallback"] = True
    return body
