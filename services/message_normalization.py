from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from html import unescape
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

from dateutil import parser as date_parser

from app.models.messages import DESCRIPTION_MAX_LENGTH, Message, RawCandidate
from services.time_window import as_utc

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_SEPARATOR_RE = re.compile(r"^\s*[-:–—]?\s*")
_TRAILING_SEPARATOR_RE = re.compile(r"\s*[-:–—]?\s*$")


@dataclass(frozen=True)
class IdentifierRule:
    """
    How a feed type's canonical identifier is found.

    `field` is the raw candidate attribute the pattern runs against. With no
    `template` the matched text itself becomes the identifier; otherwise the
    template is formatted with the pattern's groups (`{1}`, `{2}`, ...).
    """

    pattern: re.Pattern
    origin: str
    field: str = "title"
    template: Optional[str] = None


_MARINES = "https://www.marines.mil"

IDENTIFIER_RULES: Dict[str, IdentifierRule] = {
    "maradmin": IdentifierRule(re.compile(r"MARADMIN\s+\d+[-/]\d+", re.I), _MARINES),
    "mcpub": IdentifierRule(
        re.compile(r"\b(?:MCO|MCBUL|MCRP|FMFM|MCWP|NAVMC)\s+[\d.]+[A-Z]*", re.I), _MARINES
    ),
    "alnav": IdentifierRule(re.compile(r"ALNAV\s+\d+[-/]\d+", re.I), "https://www.mynavyhr.navy.mil"),
    "almar": IdentifierRule(re.compile(r"ALMAR\s+\d+[-/]\d+", re.I), _MARINES),
    "secnav": IdentifierRule(
        re.compile(r"SECNAV(?:INST)?\s+[\d.]+[A-Z]*", re.I), "https://www.secnav.navy.mil"
    ),
    "opnav": IdentifierRule(
        re.compile(r"OPNAV(?:INST)?\s+[\d.]+[A-Z]*", re.I), "https://www.secnav.navy.mil"
    ),
    "dodfmr": IdentifierRule(
        re.compile(r"Change\s+(?:Notice\s+)?(\d+)", re.I),
        "https://comptroller.war.gov",
        template="FMR Change {1}",
    ),
    "dodforms": IdentifierRule(
        re.compile(r"\bDD\s*(?:Form\s*)?(\d+[A-Z]?(?:-\d+)?)\b", re.I),
        "https://www.esd.whs.mil",
        template="DD {1}",
    ),
    "youtube": IdentifierRule(
        re.compile(r"[?&]v=([\w-]{6,})"),
        "https://www.youtube.com",
        field="link",
        template="YOUTUBE {1}",
    ),
    "semperadmin": IdentifierRule(
        # /posts/<id>, /videos/<id>, /permalink/<id>, permalink.php?story_fbid=<id>,
        # /photos/<album>/<id>/
        re.compile(r"(?:/(?:posts|videos|permalink)/|[?&]story_fbid=|/photos/[^/?#]+/)([\w.-]+)"),
        "https://www.facebook.com",
        field="link",
        template="SEMPERADMIN {1}",
    ),
}


def default_origin(feed_type: str) -> Optional[str]:
    rule = IDENTIFIER_RULES.get(feed_type)
    return rule.origin if rule else None


def _collapse(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", value or "").strip()


def _strip_html(value: str) -> str:
    text = unescape(value or "")
    text = _HTML_TAG_RE.sub(" ", text)
    return _collapse(text)


def _trim_description(value: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    value = value.strip()
    if len(value) <= max_length:
        return value
    return value[: max_length - 1].rstrip() + "…"


def parse_published(raw: Optional[str], now: datetime) -> datetime:
    """
    Parse an upstream date string to an aware UTC datetime.

    Naive values are taken as UTC; anything unparseable becomes `now`.
    """
    if not raw or not str(raw).strip():
        return as_utc(now)
    try:
        parsed = date_parser.parse(str(raw).strip())
    except (ValueError, OverflowError, TypeError):
        return as_utc(now)
    return as_utc(parsed)


def resolve_link(raw_link: str, base_url: Optional[str]) -> str:
    link = (raw_link or "").strip()
    if not link or urlparse(link).scheme in ("http", "https"):
        return link
    if link.startswith("//"):
        return "https:" + link
    if not base_url:
        return link
    return urljoin(base_url.rstrip("/") + "/", link)


def derive_subject(title: str, start: int, end: int) -> str:
    """Title with the identifier (and a separator next to it) removed."""
    head = _TRAILING_SEPARATOR_RE.sub("", title[:start])
    tail = _LEADING_SEPARATOR_RE.sub("", title[end:])
    subject = _collapse(" ".join(part for part in (head, tail) if part))
    return subject or title


def extract_identifier(raw: RawCandidate, feed_type: str) -> Optional[tuple[str, re.Match]]:
    rule = IDENTIFIER_RULES.get(feed_type)
    if rule is None:
        return None
    haystack = raw.raw_title if rule.field == "title" else raw.raw_link
    match = rule.pattern.search(haystack or "")
    if match is None:
        return None
    if rule.template:
        identifier = rule.template.format(None, *match.groups())
    else:
        identifier = match.group(0).upper()
    return _collapse(identifier), match


def normalize(
    raw: RawCandidate,
    feed_type: str,
    *,
    now: datetime,
    base_url: Optional[str] = None,
    source_tier: int = 1,
    tier_kind: str = "rss",
) -> Optional[Message]:
    """
    Convert one raw candidate into a Message.

    Returns None when no identifier can be extracted; that is a filter, not an
    error. Output is fully determined by the arguments, `now` included.
    """
    found = extract_identifier(raw, feed_type)
    if found is None:
        return None
    identifier, match = found

    title = _collapse(raw.raw_title) or identifier
    if IDENTIFIER_RULES[feed_type].field == "title":
        subject = derive_subject(title, *_span_in(title, raw.raw_title, match))
    else:
        subject = title

    return Message(
        identifier=identifier,
        title=title,
        subject=subject,
        link=resolve_link(raw.raw_link, base_url or default_origin(feed_type)),
        published_at=parse_published(raw.raw_published, now),
        description=_trim_description(_strip_html(raw.raw_description or "")),
        category=_collapse(raw.raw_category) if raw.raw_category else None,
        feed_type=feed_type,
        source_tier=source_tier,
        tier_kind=tier_kind,
    )


def _span_in(title: str, raw_title: str, match: re.Match) -> tuple[int, int]:
    # The match was taken on the raw title; re-locate it after whitespace collapsing.
    if title == raw_title:
        return match.span()
    relocated = re.search(re.escape(_collapse(match.group(0))), title)
    if relocated is None:
        return 0, 0
    return relocated.span()


def build_placeholder(
    raw: RawCandidate,
    feed_type: str,
    *,
    now: datetime,
    identifier: Optional[str] = None,
    base_url: Optional[str] = None,
    source_tier: int = 1,
) -> Message:
    """
    The sentinel record served by a static tier. Exempt from the identifier
    pattern and from the recency window.
    """
    title = _collapse(raw.raw_title)
    return Message(
        identifier=identifier or f"{feed_type.upper()}-PENDING",
        title=title,
        subject=title,
        link=resolve_link(raw.raw_link, base_url or default_origin(feed_type)),
        published_at=parse_published(raw.raw_published, now),
        description=_trim_description(_strip_html(raw.raw_description or "")),
        category=raw.raw_category,
        feed_type=feed_type,
        source_tier=source_tier,
        tier_kind="static",
        is_placeholder=True,
    )
