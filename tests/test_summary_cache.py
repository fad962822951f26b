from __future__ import annotations

import json
from datetime import datetime, timezone

from services.summary_cache_service import SummaryCache


def test_put_then_get(tmp_path):
    cache = SummaryCache(tmp_path / "summaries.json")

    assert cache.put("MARADMIN 123/25::summary", "text", "MARADMIN", "123/25") is True

    entry = cache.get("MARADMIN 123/25::summary")
    assert entry is not None
    assert entry.summary == "text"
    assert entry.message_type == "MARADMIN"
    assert entry.message_id == "123/25"
    assert entry.timestamp.endswith("Z")


def test_unknown_key_is_not_found(tmp_path):
    cache = SummaryCache(tmp_path / "summaries.json")
    assert cache.get("nothing-here") is None
    cache.put("other", "text")
    assert cache.get("nothing-here") is None


def test_reput_overwrites(tmp_path):
    cache = SummaryCache(tmp_path / "summaries.json")
    cache.put("k", "first", now=datetime(2025, 1, 1, tzinfo=timezone.utc))
    cache.put("k", "second", now=datetime(2025, 2, 1, tzinfo=timezone.utc))

    entry = cache.get("k")
    assert entry.summary == "second"
    assert entry.timestamp.startswith("2025-02-01")
    assert list(cache.all()) == ["k"]


def test_document_uses_camel_case_keys(tmp_path):
    path = tmp_path / "summaries.json"
    SummaryCache(path).put("maradmin_123", "text", "maradmin", "123")

    document = json.loads(path.read_text(encoding="utf-8"))
    assert set(document["maradmin_123"]) == {"summary", "messageType", "messageId", "timestamp"}


def test_all_returns_every_entry(tmp_path):
    cache = SummaryCache(tmp_path / "summaries.json")
    cache.put("a", "one")
    cache.put("b", "two")
    assert {k: v.summary for k, v in cache.all().items()} == {"a": "one", "b": "two"}


def test_write_failure_reports_false(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cache = SummaryCache(blocker / "summaries.json")

    assert cache.put("k", "text") is False


def test_corrupt_document_is_not_overwritten(tmp_path):
    path = tmp_path / "summaries.json"
    path.write_text("{broken", encoding="utf-8")
    cache = SummaryCache(path)

    assert cache.put("k", "text") is False
    assert path.read_text(encoding="utf-8") == "{broken"
    assert cache.get("k") is None
    assert cache.all() == {}


def test_no_temp_files_left_behind(tmp_path):
    cache = SummaryCache(tmp_path / "summaries.json")
    cache.put("k", "text")
    assert [p.name for p in tmp_path.iterdir()] == ["summaries.json"]
