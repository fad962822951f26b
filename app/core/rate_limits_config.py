# app/core/rate_limits_config.py
"""
Rate limiting configuration per action type.

All limits are per caller IP address.
"""

from typing import Dict, Tuple

# Rate limit configuration: (limit, window_seconds)
RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "api": (100, 900),  # every /api/* route: 100 requests per 15 minutes
    "ai_summary": (10, 60),  # Gemini summaries: 10 per minute
}


def get_rate_limit(action: str) -> Tuple[int, int]:
    """
    Get rate limit configuration for an action.

    Raises:
        ValueError: If action is not configured
    """
    if action not in RATE_LIMITS:
        raise ValueError(f"Rate limit not configured for action: {action}")
    return RATE_LIMITS[action]
