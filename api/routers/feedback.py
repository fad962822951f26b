from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from app.models.feedback import FeedbackRequest
from services.feedback_service import (
    FeedbackUpstreamError,
    FeedbackValidationError,
    create_feedback_issue,
)

router = APIRouter(tags=["feedback"])


@router.post("/feedback")
async def submit_feedback(payload: FeedbackRequest) -> Dict[str, Any]:
    try:
        created = await create_feedback_issue(payload)
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail={"success": False, "error": str(exc)})
    except FeedbackValidationError as exc:
        raise HTTPException(status_code=400, detail={"success": False, "error": str(exc)})
    except FeedbackUpstreamError as exc:
        raise HTTPException(status_code=502, detail={"success": False, "error": str(exc)})
    return {"success": True, **created}
