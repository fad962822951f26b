from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from app.models.feed_sources import FeedSource, get_all_feeds
from app.models.messages import FeedResult
from services.base_scraper_service import BaseScraperService
from services.feed_orchestrator import FeedOrchestrator

configure_logging(service_name="worker")
logger = get_logger().bind(worker="feed_ingest_bot")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="FeedIngestBot: run the fallback chain for each feed and print what it served."
    )
    parser.add_argument(
        "--feed",
        action="append",
        dest="feeds",
        metavar="KEY",
        help="Feed key to fetch; repeat for several. Default: every feed in the registry.",
    )
    parser.add_argument(
        "--window-days",
        type=int,
        default=None,
        help="Override the recency window for this run.",
    )
    return parser.parse_args(argv)


def _report(result: FeedResult) -> Dict[str, Any]:
    return {
        "feedId": result.feed_id,
        "tierUsed": result.tier_used,
        "count": len(result.messages),
        "warnings": result.warnings,
        "identifiers": [m.identifier for m in result.messages],
    }


def select_feeds(keys: Optional[List[str]]) -> List[FeedSource]:
    feeds = get_all_feeds()
    if not keys:
        return feeds
    wanted = [k.strip().lower() for k in keys]
    by_key = {feed.key: feed for feed in feeds}
    unknown = [k for k in wanted if k not in by_key]
    if unknown:
        logger.warning("feed_ingest_unknown_feeds", feeds=unknown)
    return [by_key[k] for k in wanted if k in by_key]


async def run_ingest(feeds: List[FeedSource], window_days: Optional[int]) -> List[Dict[str, Any]]:
    now = datetime.now(timezone.utc)
    reports: List[Dict[str, Any]] = []
    async with BaseScraperService() as client:
        orchestrator = FeedOrchestrator(client)
        for feed in feeds:
            result = await orchestrator.fetch(feed, now=now, window_days=window_days)
            reports.append(_report(result))
    logger.info(
        "feed_ingest_bot_finished",
        feeds=len(reports),
        empty=sum(1 for r in reports if r["count"] == 0),
    )
    return reports


async def main_async(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    feeds = select_feeds(args.feeds)
    with with_run_id():
        reports = await run_ingest(feeds, args.window_days)
    for report in reports:
        sys.stdout.write(json.dumps(report) + "\n")
    # An empty feed is a normal outcome, not a failure.
    return 0


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
