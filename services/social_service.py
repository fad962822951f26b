"""
Pass-through clients for the social platforms the hub mirrors: the YouTube
channel search and the SemperAdmin Facebook page posts.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from app.config import require_facebook, require_youtube
from app.core.logging import get_logger
from services.base_scraper_service import BaseScraperService
from services.feed_adapters import collect_pages, describe_error, error_status

logger = get_logger()

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
YOUTUBE_MAX_RESULTS = 50
FACEBOOK_POSTS_URL = "https://graph.facebook.com/v19.0/{page_id}/posts"
FACEBOOK_POST_FIELDS = "id,message,created_time,permalink_url,full_picture"
FACEBOOK_MAX_PAGES = 10


class SocialUpstreamError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def clamp_max_results(value: Optional[int]) -> int:
    if value is None:
        return YOUTUBE_MAX_RESULTS
    return max(1, min(YOUTUBE_MAX_RESULTS, int(value)))


async def fetch_youtube_videos(
    *,
    page_token: Optional[str] = None,
    max_results: Optional[int] = None,
) -> Dict[str, Any]:
    """
    One page of the channel's newest videos, returned as the upstream JSON.

    Raises:
        RuntimeError: if the YouTube key or channel is not configured
        SocialUpstreamError: on any upstream failure
    """
    api_key, channel_id = require_youtube()
    params = {
        "key": api_key,
        "channelId": channel_id,
        "part": "snippet",
        "order": "date",
        "type": "video",
        "maxResults": str(clamp_max_results(max_results)),
    }
    if page_token:
        params["pageToken"] = page_token

    try:
        async with BaseScraperService(verify_tls=True) as client:
            response = await client.fetch(YOUTUBE_SEARCH_URL, params=params)
            payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("youtube_videos_failed", error=describe_error(exc))
        raise SocialUpstreamError(error_status(exc), f"YouTube API request failed: {describe_error(exc)}") from exc

    logger.info("youtube_videos_fetched", items=len(payload.get("items") or []))
    return payload


async def fetch_facebook_posts() -> Dict[str, Any]:
    """
    Walk the page's posts through `paging.next`, up to FACEBOOK_MAX_PAGES pages.

    A failure after the first page keeps the posts gathered so far.

    Raises:
        RuntimeError: if the Facebook token or page id is not configured
        SocialUpstreamError: if the first page cannot be fetched
    """
    access_token, page_id = require_facebook()
    async with BaseScraperService(verify_tls=True) as client:
        pages = await collect_pages(
            client,
            FACEBOOK_POSTS_URL.format(page_id=page_id),
            params={"access_token": access_token, "fields": FACEBOOK_POST_FIELDS, "limit": "100"},
            items_path="data",
            next_url_field="paging.next",
            max_pages=FACEBOOK_MAX_PAGES,
        )

    if pages.pages_retrieved == 0 and pages.error_status is not None:
        raise SocialUpstreamError(pages.error_status, "Facebook API request failed")

    posts: List[Any] = pages.items
    logger.info(
        "facebook_posts_fetched",
        posts=len(posts),
        pages=pages.pages_retrieved,
        has_more=pages.has_more,
    )
    return {
        "success": True,
        "posts": posts,
        "metadata": {
            "totalPosts": len(posts),
            "pagesRetrieved": pages.pages_retrieved,
            "hasMore": pages.has_more,
        },
    }
