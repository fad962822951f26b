from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from app.core.logging import get_logger
from app.models.feed_sources import FeedSource, FeedTier, get_feed
from app.models.messages import FeedResult, Message
from services.base_scraper_service import BaseScraperService
from services.dedupe_service import merge_messages
from services.feed_adapters import SourceAdapter, build_adapter, describe_error
from services.message_normalization import build_placeholder, normalize
from services.time_window import as_utc, filter_by_window

logger = get_logger()

AdapterFactory = Callable[[FeedTier], SourceAdapter]


class FeedNotFoundError(LookupError):
    def __init__(self, feed_id: str):
        super().__init__(f"Unknown feed: {feed_id}")
        self.feed_id = feed_id


class FeedOrchestrator:
    """
    Runs a feed's fallback chain.

    Tiers are tried one at a time in configured order. The first tier whose
    output normalizes to at least one message is authoritative: its messages
    are window-filtered and merged, and no lower tier is invoked. A feed whose
    tiers all come back empty yields an empty result with warnings.
    """

    def __init__(
        self,
        client: BaseScraperService,
        *,
        adapter_factory: AdapterFactory = build_adapter,
    ) -> None:
        self.client = client
        self.adapter_factory = adapter_factory

    async def fetch(
        self,
        feed: FeedSource,
        *,
        now: datetime,
        window_days: Optional[int] = None,
    ) -> FeedResult:
        now = as_utc(now)
        window = window_days if window_days is not None else feed.effective_window_days()
        warnings: List[str] = []

        for index, tier in enumerate(feed.tiers, start=1):
            label = f"tier {index} ({tier.describe()})"
            try:
                result = await self.adapter_factory(tier).fetch(self.client, now=now)
            except Exception as exc:
                logger.warning("feed_tier_failed", feed=feed.key, tier=index, error=describe_error(exc))
                warnings.append(f"{label}: {describe_error(exc)}")
                continue

            warnings.extend(f"{label}: {w}" for w in result.warnings)
            messages = self._normalize_all(feed, tier, index, result.candidates, now)
            if not messages:
                if result.candidates:
                    warnings.append(
                        f"{label}: {len(result.candidates)} items, none with a {feed.feed_type} identifier"
                    )
                elif not result.warnings:
                    warnings.append(f"{label}: no items")
                logger.info("feed_tier_empty", feed=feed.key, tier=index, kind=tier.kind)
                continue

            served = merge_messages(filter_by_window(messages, window, now))
            logger.info(
                "feed_tier_served",
                feed=feed.key,
                tier=index,
                kind=tier.kind,
                normalized=len(messages),
                served=len(served),
                window_days=window,
            )
            return FeedResult(feed_id=feed.key, messages=served, tier_used=index, warnings=warnings)

        tried = ", ".join(f"{i}:{t.describe()}" for i, t in enumerate(feed.tiers, start=1))
        warnings.append(f"all tiers exhausted, no messages found (tried {tried})")
        logger.warning("feed_tiers_exhausted", feed=feed.key, tiers=len(feed.tiers))
        return FeedResult(feed_id=feed.key, messages=[], tier_used=0, warnings=warnings)

    @staticmethod
    def _normalize_all(feed, tier, index, candidates, now) -> List[Message]:
        if tier.kind == "static":
            return [
                build_placeholder(
                    candidate,
                    feed.feed_type,
                    now=now,
                    identifier=tier.options.get("identifier"),
                    base_url=feed.base_url,
                    source_tier=index,
                )
                for candidate in candidates
            ]
        normalized = (
            normalize(
                candidate,
                feed.feed_type,
                now=now,
                base_url=feed.base_url,
                source_tier=index,
                tier_kind=tier.kind,
            )
            for candidate in candidates
        )
        return [m for m in normalized if m is not None]


async def fetch_feed(
    feed_id: str,
    *,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
    feeds_path: Optional[Path] = None,
) -> FeedResult:
    """
    Resolve a feed from the registry and run its fallback chain.

    Raises:
        FeedNotFoundError: if `feed_id` is not in the registry
    """
    feed = get_feed(feed_id, feeds_path)
    if feed is None:
        raise FeedNotFoundError(feed_id)
    async with BaseScraperService() as client:
        return await FeedOrchestrator(client).fetch(
            feed,
            now=now or datetime.now(timezone.utc),
            window_days=window_days,
        )
