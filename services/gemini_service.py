# services/gemini_service.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import require_gemini, settings
from app.core.logging import get_logger
from services.feed_adapters import describe_error

logger = get_logger()

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
CONTENT_MAX_LENGTH = 8000
SECTION_MAX_LENGTH = 500

_SUMMARY_PROMPT = (
    "Summarize the following {message_type} message for service members. "
    "Start with a title line in capitals, then a 5W overview (who, what, when, "
    "where, why; one line each), then short bulleted key points grouped under "
    "capitalized section names. Use only facts stated in the message.\n\n"
    "MESSAGE:\n{content}"
)

_SUBJ_RE = re.compile(r"SUBJ/(.*?)(?://|REF)", re.I | re.S)
_DTG_RE = re.compile(r"R\s+(\d{6}Z\s+[A-Z]+\s+\d{2,4})", re.I)
_DATE_SIGNED_RE = re.compile(r"Date Signed:\s+(.*?)(?:\||$)", re.I | re.M)
_PURPOSE_RE = re.compile(r"(?:Purpose|Remarks)[.:]?\s*(?:\d+\.)?\s*(.*?)(?:\n\n|\d+\.|$)", re.I | re.S)
_SECTION_RE = re.compile(r"(\d+)\.\s+([A-Za-z\s]+)[.:]?\s+(.*?)(?=\n\d+\.|\Z)", re.S)


@dataclass
class SummaryResult:
    summary: str
    # True when the text was extracted locally because the model gave nothing usable.
    fallback: bool = False


def clip_content(content: str) -> str:
    return content[:CONTENT_MAX_LENGTH]


def build_prompt(content: str, message_type: Optional[str]) -> str:
    return _SUMMARY_PROMPT.format(
        message_type=(message_type or "administrative").upper(),
        content=clip_content(content),
    )


def generate_basic_summary(content: str, subject: Optional[str] = None) -> str:
    """
    Deterministic summary built from the message's own structure: SUBJ line,
    date-time group (or "Date Signed"), purpose/remarks paragraph and the
    numbered sections, each clipped.
    """
    subj_match = _SUBJ_RE.search(content)
    title = subj_match.group(1).strip() if subj_match else (subject or "Message summary")
    parts = [f"{title.upper()}\n"]

    date_match = _DTG_RE.search(content) or _DATE_SIGNED_RE.search(content)
    if date_match:
        parts.append(f"DATE: {date_match.group(1).strip()}\n")

    purpose_match = _PURPOSE_RE.search(content)
    if purpose_match and purpose_match.group(1).strip():
        parts.append(f"PURPOSE:\n{purpose_match.group(1).strip()}\n")

    sections = []
    for match in _SECTION_RE.finditer(content):
        body = match.group(3).strip()[:SECTION_MAX_LENGTH]
        if body:
            sections.append(f"{match.group(2).strip().upper()}:\n{body}\n")
    if sections:
        parts.append("\n".join(sections))

    return "\n".join(parts).strip()


def _candidate_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return None
    texts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
    return "\n".join(texts).strip() or None


class GeminiService:
    """
    Calls the Gemini generateContent REST endpoint.

    Falls back to `generate_basic_summary` when the upstream call fails or
    returns no candidate text, so a configured key always yields a summary.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.api_key = api_key or require_gemini()
        self.model = model or settings.GEMINI_MODEL
        self.timeout_s = timeout_s if timeout_s is not None else settings.GEMINI_TIMEOUT_S

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_BASE_URL}/{self.model}:generateContent"

    async def summarize(self, content: str, message_type: Optional[str] = None) -> SummaryResult:
        body = {
            "contents": [{"parts": [{"text": build_prompt(content, message_type)}]}],
            "generationConfig": {"temperature": 0.4, "maxOutputTokens": 2048},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.post(self.endpoint, params={"key": self.api_key}, json=body)
                response.raise_for_status()
                text = _candidate_text(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("gemini_summarize_failed", model=self.model, error=describe_error(exc))
            text = None

        if text:
            logger.info("gemini_summarize_ok", model=self.model, chars=len(text))
            return SummaryResult(summary=text)

        logger.info("gemini_summarize_fallback", model=self.model, message_type=message_type)
        return SummaryResult(summary=generate_basic_summary(content, message_type), fallback=True)
