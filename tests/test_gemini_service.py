import json

import pytest

from app.config import settings
from services.gemini_service import (
    CONTENT_MAX_LENGTH,
    GeminiService,
    build_prompt,
    clip_content,
    generate_basic_summary,
)

MARADMIN_TEXT = (
    "R 101200Z OCT 25\n"
    "MARADMIN 512/25\n"
    "SUBJ/FY26 RETENTION BONUS//\n"
    "REF/A/MSG/CMC/011200ZOCT25//\n"
    "1.  Purpose.  This message announces the bonus.\n"
    "2.  Eligibility.  Marines with 4 years of service.\n"
)


def test_clip_content():
    assert len(clip_content("x" * (CONTENT_MAX_LENGTH + 10))) == CONTENT_MAX_LENGTH
    assert clip_content("short") == "short"


def test_build_prompt_names_type_and_clips():
    prompt = build_prompt("y" * 9000, "maradmin")
    assert "MARADMIN message" in prompt
    assert "y" * CONTENT_MAX_LENGTH in prompt
    assert "y" * (CONTENT_MAX_LENGTH + 1) not in prompt


def test_basic_summary_extracts_structure():
    summary = generate_basic_summary(MARADMIN_TEXT)

    assert summary.startswith("FY26 RETENTION BONUS")
    assert "DATE: 101200Z OCT 25" in summary
    assert "PURPOSE:\nThis message announces the bonus." in summary
    assert "ELIGIBILITY:\nMarines with 4 years of service." in summary


def test_basic_summary_uses_date_signed():
    summary = generate_basic_summary("SUBJ/Travel policy//\nDate Signed: 3/4/2025 | Other")
    assert "TRAVEL POLICY" in summary
    assert "DATE: 3/4/2025" in summary


def test_basic_summary_without_structure_uses_subject():
    assert generate_basic_summary("plain text", "alnav").startswith("ALNAV")
    assert generate_basic_summary("plain text").startswith("MESSAGE SUMMARY")


def test_service_requires_key(monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
    with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
        GeminiService()


@pytest.mark.asyncio
async def test_summarize_returns_model_text(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        json={"candidates": [{"content": {"parts": [{"text": "RETENTION BONUS\n- Key point"}]}}]},
    )
    service = GeminiService(api_key="k", model="gemini-test")

    result = await service.summarize(MARADMIN_TEXT, "maradmin")

    assert result.summary == "RETENTION BONUS\n- Key point"
    assert result.fallback is False
    request = httpx_mock.get_requests()[0]
    assert request.url.path.endswith("/gemini-test:generateContent")
    assert request.url.params["key"] == "k"
    body = json.loads(request.content)
    assert body["generationConfig"] == {"temperature": 0.4, "maxOutputTokens": 2048}


@pytest.mark.asyncio
async def test_summarize_falls_back_on_upstream_error(httpx_mock):
    httpx_mock.add_response(method="POST", status_code=500)
    service = GeminiService(api_key="k")

    result = await service.summarize(MARADMIN_TEXT, "maradmin")

    assert result.fallback is True
    assert result.summary.startswith("FY26 RETENTION BONUS")


@pytest.mark.asyncio
async def test_summarize_falls_back_on_empty_candidates(httpx_mock):
    httpx_mock.add_response(method="POST", json={"candidates": []})
    service = GeminiService(api_key="k")

    result = await service.summarize("plain text", "almar")

    assert result.fallback is True
    assert result.summary == "ALMAR"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        "plain string",
        {"candidates": ["oops"]},
        {"candidates": [{"content": "text instead of parts"}]},
    ],
)
async def test_summarize_falls_back_on_unexpected_payload_shape(httpx_mock, payload):
    httpx_mock.add_response(method="POST", json=payload)
    service = GeminiService(api_key="k")

    result = await service.summarize(MARADMIN_TEXT, "maradmin")

    assert result.fallback is True
    assert result.summary.startswith("FY26 RETENTION BONUS")
