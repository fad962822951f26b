"""
Feed registry loader.

Parses configs/feeds.yml into strongly-typed FeedSource objects, each with an
ordered fallback chain of FeedTier definitions. Validation issues are logged
and the offending entry skipped; results are cached per path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from app.config import settings
from app.core.logging import get_logger

logger = get_logger()

TIER_KINDS: Sequence[str] = ("rss", "html", "json", "static")

# Must stay in sync with services.message_normalization.IDENTIFIER_RULES.
FEED_TYPES: Sequence[str] = (
    "maradmin",
    "mcpub",
    "alnav",
    "almar",
    "secnav",
    "opnav",
    "dodfmr",
    "dodforms",
    "youtube",
    "semperadmin",
)

DEFAULT_MAX_PAGES = 10

_REQUIRED_TIER_FIELDS: Dict[str, Sequence[str]] = {
    "rss": ("url",),
    "html": ("container",),
    "json": ("url", "items_path", "title_field", "date_field"),
    "static": ("title", "link"),
}


@dataclass(frozen=True)
class FeedTier:
    """Single adapter attempt within a feed's fallback chain."""

    kind: str
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> Optional[str]:
        urls = self.urls
        return urls[0] if urls else None

    @property
    def urls(self) -> List[str]:
        """`urls` (html tiers may list several pages) or the single `url`."""
        many = self.options.get("urls")
        if isinstance(many, list):
            return [str(u) for u in many if u]
        value = self.options.get("url")
        return [str(value)] if value else []

    @property
    def max_pages(self) -> int:
        raw_value = self.options.get("max_pages")
        if raw_value is None:
            return DEFAULT_MAX_PAGES
        try:
            return max(1, int(raw_value))
        except (TypeError, ValueError):
            logger.warning("feed_tier_invalid_max_pages", value=raw_value)
            return DEFAULT_MAX_PAGES

    def describe(self) -> str:
        if len(self.urls) > 1:
            return f"{self.kind}:{self.urls[0]} (+{len(self.urls) - 1} more)"
        return f"{self.kind}:{self.url}" if self.url else self.kind


@dataclass(frozen=True)
class FeedSource:
    """One logical upstream source of administrative messages."""

    key: str
    name: str
    feed_type: str
    tiers: List[FeedTier]
    base_url: Optional[str] = None
    window_days: Optional[int] = None

    def effective_window_days(self) -> int:
        if self.window_days is not None:
            return self.window_days
        return settings.DEFAULT_WINDOW_DAYS


def load_feeds_config(path: Optional[Path] = None) -> Dict[str, object]:
    """
    Load the raw YAML config.

    Returns an empty dict when the file is missing or invalid so the API
    keeps serving (every feed then reports "no messages found").
    """
    cfg_path = Path(path) if path else Path(settings.FEEDS_CONFIG_PATH)
    try:
        text = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error("feeds_config_not_found", path=str(cfg_path))
        return {}
    except OSError as exc:
        logger.error("feeds_config_read_error", path=str(cfg_path), error=str(exc))
        return {}

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        logger.error("feeds_config_parse_error", path=str(cfg_path), error=str(exc))
        return {}

    if not isinstance(data, dict):
        logger.error(
            "feeds_config_invalid_root",
            path=str(cfg_path),
            root_type=type(data).__name__,
        )
        return {}

    return data


def _validate_tier(feed_key: str, index: int, raw: object) -> Optional[FeedTier]:
    if not isinstance(raw, dict):
        logger.warning("feed_tier_invalid_entry_type", feed=feed_key, index=index)
        return None
    kind = str(raw.get("kind") or "").strip().lower()
    if kind not in TIER_KINDS:
        logger.warning("feed_tier_invalid_kind", feed=feed_key, index=index, kind=kind)
        return None
    missing = [k for k in _REQUIRED_TIER_FIELDS[kind] if not raw.get(k)]
    if kind == "html" and not raw.get("url") and not raw.get("urls"):
        missing.append("url")
    if missing:
        logger.warning("feed_tier_missing_fields", feed=feed_key, index=index, missing=missing)
        return None
    options = {k: v for k, v in raw.items() if k != "kind"}
    return FeedTier(kind=kind, options=options)


def _validate_feed(raw: Dict[str, object]) -> Optional[FeedSource]:
    """Validate a raw dict and convert it to a FeedSource, logging issues."""
    required_keys = ("key", "name", "feed_type", "tiers")
    missing = [k for k in required_keys if not raw.get(k)]
    if missing:
        logger.warning("feed_invalid_missing_fields", missing=missing, key=raw.get("key"))
        return None

    key = str(raw["key"]).strip().lower()
    feed_type = str(raw["feed_type"]).strip().lower()
    if feed_type not in FEED_TYPES:
        logger.warning("feed_invalid_feed_type", key=key, feed_type=feed_type)
        return None

    raw_tiers = raw["tiers"]
    if not isinstance(raw_tiers, list):
        logger.warning("feed_invalid_tiers_type", key=key, actual_type=type(raw_tiers).__name__)
        return None
    tiers = [t for t in (_validate_tier(key, i, r) for i, r in enumerate(raw_tiers)) if t]
    if not tiers:
        logger.warning("feed_without_valid_tiers", key=key)
        return None

    window_days: Optional[int] = None
    if raw.get("window_days") is not None:
        try:
            window_days = max(0, int(raw["window_days"]))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning("feed_invalid_window_days", key=key, value=raw.get("window_days"))

    return FeedSource(
        key=key,
        name=str(raw["name"]).strip(),
        feed_type=feed_type,
        base_url=str(raw["base_url"]).strip() if raw.get("base_url") else None,
        tiers=tiers,
        window_days=window_days,
    )


@lru_cache(maxsize=8)
def _load_feeds_from_path(path_str: str) -> List[FeedSource]:
    cfg_path = Path(path_str)
    cfg = load_feeds_config(cfg_path)
    raw_feeds = cfg.get("feeds", [])

    if not isinstance(raw_feeds, list):
        logger.error(
            "feeds_invalid_feeds_type",
            actual_type=type(raw_feeds).__name__,
            path=str(cfg_path),
        )
        return []

    result: List[FeedSource] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_feeds):
        if not isinstance(raw, dict):
            logger.warning("feed_invalid_entry_type", index=idx, value_type=type(raw).__name__)
            continue
        parsed = _validate_feed(raw)
        if parsed is None:
            continue
        if parsed.key in seen:
            logger.warning("feed_duplicate_key", key=parsed.key)
            continue
        seen.add(parsed.key)
        result.append(parsed)

    logger.info("feeds_loaded", path=str(cfg_path), total=len(result))
    return result


def get_all_feeds(path: Optional[Path] = None) -> List[FeedSource]:
    """
    Public accessor for all valid feeds. Accepts an optional path (tests).
    """
    cfg_path = Path(path) if path else Path(settings.FEEDS_CONFIG_PATH)
    return list(_load_feeds_from_path(str(cfg_path.resolve())))


def get_feed(key: str, path: Optional[Path] = None) -> Optional[FeedSource]:
    wanted = key.strip().lower()
    for feed in get_all_feeds(path):
        if feed.key == wanted:
            return feed
    return None


def clear_feeds_cache() -> None:
    """Reset the LRU cache (tests)."""
    _load_feeds_from_path.cache_clear()
