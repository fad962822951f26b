from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel

FEEDBACK_TYPES: Sequence[str] = ("bug", "feature", "feedback")

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 50000
EMAIL_MAX_LENGTH = 200


class FeedbackRequest(BaseModel):
    type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    email: Optional[str] = None
    # Free-form client state (page, user agent, selected feed).
    context: Optional[Dict[str, Any]] = None
