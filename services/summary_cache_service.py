"""
Summary cache: message key -> AI summary, kept in one JSON document on disk.

Every operation loads (and `put` rewrites) the whole document. Writes go to a
temporary file in the same directory and are swapped in with os.replace, so a
failed write leaves the previous document intact. Concurrent writers are not
coordinated; the last one to replace the file wins.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from app.config import settings
from app.core.logging import get_logger
from app.models.summaries import SummaryEntry

logger = get_logger()


class SummaryCacheError(Exception):
    """The cache document exists but cannot be read as a JSON object."""


def _iso_now(now: Optional[datetime] = None) -> str:
    value = now or datetime.now(timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SummaryCache:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else Path(settings.SUMMARY_CACHE_PATH)

    def _load(self) -> Dict[str, dict]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise SummaryCacheError(f"cannot read {self.path}: {exc}") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SummaryCacheError(f"{self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SummaryCacheError(f"{self.path} root is {type(data).__name__}, expected object")
        return data

    def _load_for_read(self) -> Dict[str, dict]:
        try:
            return self._load()
        except SummaryCacheError as exc:
            logger.error("summary_cache_read_failed", path=str(self.path), error=str(exc))
            return {}

    @staticmethod
    def _entry(key: str, raw: object) -> Optional[SummaryEntry]:
        if not isinstance(raw, dict):
            return None
        try:
            return SummaryEntry.model_validate(raw)
        except ValidationError:
            logger.warning("summary_cache_invalid_entry", message_key=key)
            return None

    def get(self, key: str) -> Optional[SummaryEntry]:
        return self._entry(key, self._load_for_read().get(key))

    def all(self) -> Dict[str, SummaryEntry]:
        entries: Dict[str, SummaryEntry] = {}
        for key, raw in self._load_for_read().items():
            entry = self._entry(key, raw)
            if entry is not None:
                entries[key] = entry
        return entries

    def put(
        self,
        key: str,
        summary: str,
        message_type: Optional[str] = None,
        message_id: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Insert or overwrite one entry. Returns False (after logging) when the
        document could not be read or rewritten.
        """
        entry = SummaryEntry(
            summary=summary,
            message_type=message_type,
            message_id=message_id,
            timestamp=_iso_now(now),
        )
        try:
            document = self._load()
            document[key] = entry.model_dump(by_alias=True)
            self._write(document)
        except (SummaryCacheError, OSError, TypeError, ValueError) as exc:
            logger.error("summary_cache_write_failed", path=str(self.path), message_key=key, error=str(exc))
            return False
        logger.info("summary_cache_put", message_key=key, total=len(document))
        return True

    def _write(self, document: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def get_summary_cache() -> SummaryCache:
    """FastAPI dependency; path is read from settings on each request."""
    return SummaryCache()
