# app/core/rate_limiting.py
"""
Rate limiting service using sliding window algorithm.

Request timestamps are kept in process memory per (action, key) and pruned
to the window on every check. Buckets that empty out are dropped by a
periodic sweep. State is lost on restart and not shared between worker
processes.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from app.core.logging import get_logger
from app.core.rate_limits_config import get_rate_limit

logger = get_logger()

SWEEP_INTERVAL_S = 60.0

_hits: Dict[Tuple[str, str], Deque[float]] = {}
# Window last used per action, so the sweep can prune buckets it is not checking.
_windows: Dict[str, int] = {}
_last_sweep: Optional[float] = None
_lock = threading.Lock()


def _resolve(action: str, limit: Optional[int], window_seconds: Optional[int]) -> Tuple[int, int]:
    if limit is None or window_seconds is None:
        default_limit, default_window = get_rate_limit(action)
        return limit or default_limit, window_seconds or default_window
    return limit, window_seconds


def _prune(bucket: Deque[float], now: float, window_seconds: int) -> None:
    while bucket and bucket[0] <= now - window_seconds:
        bucket.popleft()


def _sweep(now: float) -> None:
    """Drop every bucket whose requests have all aged out. Caller holds the lock."""
    global _last_sweep
    if _last_sweep is not None and now - _last_sweep < SWEEP_INTERVAL_S:
        return
    _last_sweep = now
    for bucket_key in list(_hits):
        bucket = _hits[bucket_key]
        _prune(bucket, now, _windows.get(bucket_key[0], 0))
        if not bucket:
            del _hits[bucket_key]


def check_and_increment_rate_limit(
    key_value: str,
    action: str,
    limit: Optional[int] = None,
    window_seconds: Optional[int] = None,
    *,
    now: Optional[float] = None,
) -> Tuple[bool, int]:
    """
    Check the sliding window for `key_value` and record the request if allowed.

    Args:
        key_value: Caller key (client IP)
        action: Action name (e.g. 'api', 'ai_summary')
        limit: Optional custom limit (uses config if None)
        window_seconds: Optional custom window (uses config if None)
        now: Monotonic timestamp override (tests)

    Returns:
        (allowed, retry_after_seconds); retry_after is 0 when allowed
    """
    limit, window_seconds = _resolve(action, limit, window_seconds)
    current = time.monotonic() if now is None else now

    with _lock:
        _windows[action] = window_seconds
        _sweep(current)
        bucket = _hits.setdefault((action, key_value), deque())
        _prune(bucket, current, window_seconds)
        if len(bucket) >= limit:
            retry_after = max(1, int(bucket[0] + window_seconds - current) + 1)
            return False, retry_after
        bucket.append(current)
        return True, 0


def tracked_callers() -> int:
    """Number of (action, caller) buckets currently held."""
    with _lock:
        return len(_hits)


def reset_rate_limits() -> None:
    """Forget all recorded requests (tests)."""
    global _last_sweep
    with _lock:
        _hits.clear()
        _windows.clear()
        _last_sweep = None
