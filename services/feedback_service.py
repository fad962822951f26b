from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

import httpx

from app.config import require_github, settings
from app.core.logging import get_logger
from app.models.feedback import (
    DESCRIPTION_MAX_LENGTH,
    EMAIL_MAX_LENGTH,
    FEEDBACK_TYPES,
    TITLE_MAX_LENGTH,
    FeedbackRequest,
)
from services.feed_adapters import describe_error

logger = get_logger()

GITHUB_API_URL = "https://api.github.com"

# C0 controls except tab and newline, DEL, and C1 controls.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")

_LABELS: Dict[str, List[str]] = {
    "bug": ["bug", "user-feedback"],
    "feature": ["enhancement", "user-feedback"],
    "feedback": ["feedback", "user-feedback"],
}


class FeedbackValidationError(ValueError):
    pass


class FeedbackUpstreamError(Exception):
    pass


def sanitize(value: Optional[str], max_length: int) -> str:
    if not value:
        return ""
    return _CONTROL_CHARS_RE.sub("", str(value)).strip()[:max_length]


def build_issue(payload: FeedbackRequest) -> Dict[str, Any]:
    """
    Validate and sanitize a feedback submission into a GitHub issue body.

    Raises:
        FeedbackValidationError: on an unknown type or a missing title/description
    """
    feedback_type = (payload.type or "").strip().lower()
    if feedback_type not in FEEDBACK_TYPES:
        raise FeedbackValidationError(
            f"Invalid type {payload.type!r}. Expected one of: {', '.join(FEEDBACK_TYPES)}"
        )
    title = sanitize(payload.title, TITLE_MAX_LENGTH)
    description = sanitize(payload.description, DESCRIPTION_MAX_LENGTH)
    if not title or not description:
        raise FeedbackValidationError("Missing required fields: title and description")
    email = sanitize(payload.email, EMAIL_MAX_LENGTH)

    lines = [description, "", "---", f"**Type:** {feedback_type}"]
    if email:
        lines.append(f"**Contact:** {email}")
    if payload.context:
        context = sanitize(json.dumps(payload.context, indent=2, default=str), DESCRIPTION_MAX_LENGTH)
        lines.extend(["", "<details><summary>Context</summary>", "", "```json", context, "```", "</details>"])

    return {
        "title": f"[{feedback_type.capitalize()}] {title}",
        "body": "\n".join(lines),
        "labels": list(_LABELS[feedback_type]),
    }


async def create_feedback_issue(payload: FeedbackRequest) -> Dict[str, Any]:
    """
    Raises:
        RuntimeError: if GitHub is not configured
        FeedbackValidationError: on invalid input
        FeedbackUpstreamError: if GitHub rejects the issue or is unreachable
    """
    token, repo = require_github()
    issue = build_issue(payload)

    try:
        async with httpx.AsyncClient(timeout=settings.FEEDBACK_TIMEOUT_S) as client:
            response = await client.post(
                f"{GITHUB_API_URL}/repos/{repo}/issues",
                json=issue,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
            )
            response.raise_for_status()
            created = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("feedback_issue_failed", repo=repo, error=describe_error(exc))
        raise FeedbackUpstreamError(f"Could not create feedback issue: {describe_error(exc)}") from exc

    logger.info("feedback_issue_created", repo=repo, issue_number=created.get("number"))
    return {"issueNumber": created.get("number"), "issueUrl": created.get("html_url")}
