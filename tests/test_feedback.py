from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.main import app
from app.models.feedback import FeedbackRequest
from services.feedback_service import FeedbackValidationError, build_issue, sanitize

client = TestClient(app)


@pytest.fixture
def github(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", "gh-token")
    monkeypatch.setattr(settings, "GITHUB_REPO", "semperadmin/hub")


def test_sanitize_strips_control_characters_but_keeps_tabs_and_newlines():
    assert sanitize("a\x00b\x07c\td\ne\x1bf\x7fg", 100) == "abc\td\nefg"


def test_sanitize_truncates():
    assert sanitize("x" * 300, 200) == "x" * 200
    assert sanitize(None, 10) == ""


def test_build_issue_labels_and_body():
    issue = build_issue(
        FeedbackRequest(
            type="bug",
            title="Feed empty\x00",
            description="MARADMIN list is empty",
            email="marine@example.com",
            context={"feed": "maradmin"},
        )
    )

    assert issue["title"] == "[Bug] Feed empty"
    assert issue["labels"] == ["bug", "user-feedback"]
    assert "MARADMIN list is empty" in issue["body"]
    assert "marine@example.com" in issue["body"]
    assert '"feed": "maradmin"' in issue["body"]


def test_build_issue_truncates_long_fields():
    issue = build_issue(FeedbackRequest(type="feature", title="t" * 500, description="d" * 60000))
    assert issue["title"] == "[Feature] " + "t" * 200
    assert issue["body"].count("d") == 50000


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "complaint", "title": "t", "description": "d"},
        {"title": "t", "description": "d"},
        {"type": "bug", "description": "d"},
        {"type": "bug", "title": "t", "description": "\x00\x01"},
    ],
)
def test_build_issue_rejects_invalid(payload):
    with pytest.raises(FeedbackValidationError):
        build_issue(FeedbackRequest(**payload))


def test_feedback_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)
    response = client.post("/api/feedback", json={"type": "bug", "title": "t", "description": "d"})
    assert response.status_code == 503
    assert response.json()["success"] is False


def test_feedback_invalid_is_400(github):
    response = client.post("/api/feedback", json={"type": "bug", "description": "d"})
    assert response.status_code == 400


def test_feedback_creates_issue(httpx_mock, github):
    httpx_mock.add_response(
        url="https://api.github.com/repos/semperadmin/hub/issues",
        method="POST",
        status_code=201,
        json={"number": 42, "html_url": "https://github.com/semperadmin/hub/issues/42"},
    )

    response = client.post(
        "/api/feedback",
        json={"type": "feedback", "title": "Great\x07 app", "description": "Thanks"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "issueNumber": 42,
        "issueUrl": "https://github.com/semperadmin/hub/issues/42",
    }
    request = httpx_mock.get_requests()[0]
    assert request.headers["Authorization"] == "Bearer gh-token"
    sent = json.loads(request.content)
    assert sent["title"] == "[Feedback] Great app"
    assert sent["labels"] == ["feedback", "user-feedback"]


def test_feedback_upstream_failure_is_502(httpx_mock, github):
    httpx_mock.add_response(
        url="https://api.github.com/repos/semperadmin/hub/issues",
        method="POST",
        status_code=401,
    )

    response = client.post("/api/feedback", json={"type": "bug", "title": "t", "description": "d"})

    assert response.status_code == 502
    assert response.json()["success"] is False
