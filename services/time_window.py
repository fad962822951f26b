from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List

from app.models.messages import Message


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def filter_by_window(messages: Iterable[Message], window_days: int, now: datetime) -> List[Message]:
    """
    Keep messages published no more than `window_days` before `now`.

    The boundary is inclusive: a message exactly `window_days` old stays.
    Placeholder records are kept regardless of age. Order is preserved.
    """
    cutoff = as_utc(now) - timedelta(days=window_days)
    return [m for m in messages if m.is_placeholder or as_utc(m.published_at) >= cutoff]
