from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.core.rate_limiting import reset_rate_limits
from app.models.feed_sources import clear_feeds_cache

NOW = datetime(2025, 10, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_process_state():
    reset_rate_limits()
    clear_feeds_cache()
    yield
    reset_rate_limits()
    clear_feeds_cache()


@pytest.fixture
def now() -> datetime:
    return NOW
