"""
Source adapters: one per upstream shape (RSS/Atom XML, scraped HTML listing,
cursor-paginated JSON API, static placeholder).

Every adapter turns one tier definition into zero or more RawCandidate
records. Adapters never raise: transport errors, non-2xx responses,
timeouts and unparseable payloads all come back as an empty AdapterResult
carrying a warning, so the orchestrator can move on to the next tier.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import feedparser
import httpx
from selectolax.lexbor import LexborHTMLParser, LexborNode

from app.config import settings
from app.core.logging import get_logger
from app.models.feed_sources import FeedTier
from app.models.messages import AdapterResult, RawCandidate
from services.base_scraper_service import BaseScraperService

logger = get_logger()

_SETTING_REF_RE = re.compile(r"^\$\{([A-Z0-9_]+)\}$")
_TEMPLATE_FIELD_RE = re.compile(r"\{([\w.]+)\}")


class MissingSettingError(Exception):
    """A tier references a setting (`${NAME}`) that is not configured."""


def describe_error(exc: Exception) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "request timed out"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return f"transport error ({exc.__class__.__name__})"
    return f"{exc.__class__.__name__}: {exc}"


def error_status(exc: Exception) -> int:
    """HTTP status to surface for a failed upstream call."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, httpx.TimeoutException):
        return 504
    return 502


def resolve_url(template: str, now: datetime) -> str:
    """Year-scoped listings use `{year}` or `{prev_year}` in their configured URL."""
    return template.replace("{prev_year}", str(now.year - 1)).replace("{year}", str(now.year))


def resolve_path(item: Any, path: Optional[str]) -> Any:
    """Walk a dotted path (`snippet.title`) through nested dicts."""
    if not path:
        return None
    current = item
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _render_template(template: str, item: Mapping[str, Any]) -> str:
    def _sub(match: re.Match) -> str:
        value = resolve_path(item, match.group(1))
        return "" if value is None else str(value)

    return _TEMPLATE_FIELD_RE.sub(_sub, template)


def _resolve_params(raw_params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for name, value in (raw_params or {}).items():
        text = str(value)
        ref = _SETTING_REF_RE.match(text)
        if ref:
            resolved = getattr(settings, ref.group(1), None)
            if not resolved:
                raise MissingSettingError(ref.group(1))
            text = str(resolved)
        params[str(name)] = text
    return params


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


class SourceAdapter:
    kind = "base"

    def __init__(self, tier: FeedTier) -> None:
        self.tier = tier

    async def fetch(self, client: BaseScraperService, *, now: datetime) -> AdapterResult:
        raise NotImplementedError


class RssAdapter(SourceAdapter):
    """RSS 2.0 / Atom documents, parsed structurally with feedparser."""

    kind = "rss"

    async def fetch(self, client: BaseScraperService, *, now: datetime) -> AdapterResult:
        url = resolve_url(self.tier.url or "", now)
        try:
            response = await client.fetch(url)
        except Exception as exc:
            logger.warning("rss_adapter_fetch_failed", url=url, error=describe_error(exc))
            return AdapterResult(warnings=[f"{url}: {describe_error(exc)}"])

        parsed = feedparser.parse(response.content)
        entries = getattr(parsed, "entries", []) or []
        if not entries:
            if getattr(parsed, "bozo", False):
                reason = str(getattr(parsed, "bozo_exception", "malformed XML"))
                logger.warning("rss_adapter_malformed", url=url, error=reason)
                return AdapterResult(warnings=[f"{url}: malformed feed ({reason})"])
            return AdapterResult(warnings=[f"{url}: feed contains no items"])

        candidates = [self._to_candidate(entry) for entry in entries]
        logger.info("rss_adapter_fetched", url=url, items=len(candidates))
        return AdapterResult(candidates=candidates)

    @staticmethod
    def _to_candidate(entry: Mapping[str, Any]) -> RawCandidate:
        link = entry.get("link") or ""
        if not link:
            for link_entry in entry.get("links") or []:
                href = link_entry.get("href") if isinstance(link_entry, Mapping) else None
                if href:
                    link = href
                    break
        category = None
        tags = entry.get("tags") or []
        if tags and isinstance(tags[0], Mapping):
            category = tags[0].get("term")
        return RawCandidate(
            raw_title=_as_text(entry.get("title")),
            raw_link=str(link).strip(),
            raw_published=entry.get("published") or entry.get("updated"),
            raw_description=entry.get("summary") or entry.get("description"),
            raw_category=category,
        )


class HtmlScrapeAdapter(SourceAdapter):
    """
    Anchors inside a listing container. Options:
        url / urls: one listing page, or several fetched one after another
        container:  CSS selector for the listing container(s)
        anchor:     CSS selector for anchors inside it (default `a[href]`)
        row:        tag of the ancestor that groups an anchor with its metadata
        date:       CSS selector of the date element within that ancestor
        title:      CSS selector of a title cell within that ancestor, appended
                    to the anchor text
    """

    kind = "html"

    async def fetch(self, client: BaseScraperService, *, now: datetime) -> AdapterResult:
        result = AdapterResult()
        for template in self.tier.urls:
            url = resolve_url(template, now)
            candidates, warning = await self._scrape(client, url)
            result.candidates.extend(candidates)
            if warning:
                result.warnings.append(f"{url}: {warning}")
        return result

    async def _scrape(self, client: BaseScraperService, url: str) -> tuple[List[RawCandidate], Optional[str]]:
        try:
            html_text = await client.fetch_html(url)
        except Exception as exc:
            logger.warning("html_adapter_fetch_failed", url=url, error=describe_error(exc))
            return [], describe_error(exc)

        options = self.tier.options
        parser = LexborHTMLParser(html_text)
        containers = parser.css(str(options["container"]))
        if not containers:
            logger.warning("html_adapter_container_missing", url=url, container=options["container"])
            return [], "listing container not found"

        anchor_selector = str(options.get("anchor") or "a[href]")
        candidates: List[RawCandidate] = []
        for container in containers:
            for anchor in container.css(anchor_selector):
                href = (anchor.attributes.get("href") or "").strip()
                title = _as_text(anchor.text(separator=" "))
                if not href or not title:
                    continue
                row = self._row_of(anchor)
                extra_title = self._cell_text(row, options.get("title"))
                if extra_title and extra_title != title:
                    title = f"{title} - {extra_title}"
                candidates.append(
                    RawCandidate(
                        raw_title=title,
                        raw_link=href,
                        raw_published=self._nearby_date(row),
                    )
                )

        logger.info("html_adapter_fetched", url=url, items=len(candidates))
        if not candidates:
            return [], "no listing anchors found"
        return candidates, None

    def _row_of(self, anchor: LexborNode) -> Optional[LexborNode]:
        row_tag = str(self.tier.options.get("row") or "").lower()
        scope = anchor.parent
        if row_tag:
            while scope is not None and scope.tag != row_tag:
                scope = scope.parent
        return scope

    @staticmethod
    def _cell_text(row: Optional[LexborNode], selector: Any) -> str:
        if row is None or not selector:
            return ""
        node = row.css_first(str(selector))
        return _as_text(node.text(separator=" ")) if node is not None else ""

    def _nearby_date(self, row: Optional[LexborNode]) -> Optional[str]:
        date_selector = self.tier.options.get("date")
        if not date_selector or row is None:
            return None
        node = row.css_first(str(date_selector))
        if node is None:
            return None
        return node.attributes.get("datetime") or node.text(strip=True) or None


class PaginatedJsonAdapter(SourceAdapter):
    """
    Cursor-paginated JSON APIs (YouTube search, Facebook page posts).

    Follows either a cursor token (`cursor_field` + `cursor_param`) or a full
    next-page URL (`next_url_field`) until the upstream stops handing one out,
    a page comes back empty, or `max_pages` is reached.
    """

    kind = "json"

    async def fetch(self, client: BaseScraperService, *, now: datetime) -> AdapterResult:
        options = self.tier.options
        url = resolve_url(self.tier.url or "", now)
        try:
            params = _resolve_params(options.get("params"))
        except MissingSettingError as exc:
            logger.warning("json_adapter_setting_missing", url=url, setting=str(exc))
            return AdapterResult(warnings=[f"{url}: setting {exc} is not configured"])

        pages = await collect_pages(
            client,
            url,
            params=params,
            items_path=str(options["items_path"]),
            cursor_field=options.get("cursor_field"),
            cursor_param=options.get("cursor_param"),
            next_url_field=options.get("next_url_field"),
            max_pages=self.tier.max_pages,
        )
        candidates = [c for c in (self._to_candidate(item) for item in pages.items) if c]
        return AdapterResult(
            candidates=candidates,
            warnings=pages.warnings,
            has_more=pages.has_more,
            pages_retrieved=pages.pages_retrieved,
        )

    def _to_candidate(self, item: Any) -> Optional[RawCandidate]:
        if not isinstance(item, Mapping):
            return None
        options = self.tier.options
        link_template = options.get("link_template")
        if link_template:
            link = _render_template(str(link_template), item)
        else:
            link = _as_text(resolve_path(item, options.get("link_field")))
        title = _as_text(resolve_path(item, options["title_field"]))
        if not title or not link:
            return None
        published = resolve_path(item, options["date_field"])
        description = resolve_path(item, options.get("description_field"))
        return RawCandidate(
            raw_title=title,
            raw_link=link,
            raw_published=str(published) if published else None,
            raw_description=str(description) if description else None,
        )


class PagedItems:
    def __init__(self) -> None:
        self.items: List[Any] = []
        self.warnings: List[str] = []
        self.pages_retrieved = 0
        self.has_more = False
        # Status to report upstream when the walk ended on a failed page.
        self.error_status: Optional[int] = None


async def collect_pages(
    client: BaseScraperService,
    url: str,
    *,
    params: Optional[Mapping[str, str]] = None,
    items_path: str,
    cursor_field: Optional[str] = None,
    cursor_param: Optional[str] = None,
    next_url_field: Optional[str] = None,
    max_pages: int = 10,
) -> PagedItems:
    """
    Accumulate items across pages. A failing page ends the walk but keeps what
    earlier pages returned; hitting `max_pages` with a cursor left is reported
    as a warning, not a failure.
    """
    result = PagedItems()
    next_url: Optional[str] = url
    next_params: Optional[Dict[str, str]] = dict(params or {})

    while next_url is not None:
        if result.pages_retrieved >= max_pages:
            result.has_more = True
            result.warnings.append(
                f"{url}: stopped after {max_pages} pages, more data may exist"
            )
            break
        try:
            response = await client.fetch(next_url, params=next_params)
            payload = response.json()
        except Exception as exc:
            logger.warning(
                "json_pagination_page_failed",
                url=url,
                page=result.pages_retrieved + 1,
                error=describe_error(exc),
            )
            result.warnings.append(f"{url}: page {result.pages_retrieved + 1} failed ({describe_error(exc)})")
            result.error_status = error_status(exc)
            break

        result.pages_retrieved += 1
        page_items = resolve_path(payload, items_path)
        if not isinstance(page_items, list) or not page_items:
            break
        result.items.extend(page_items)

        if next_url_field:
            following = resolve_path(payload, next_url_field)
            next_url = str(following) if following else None
            next_params = None
        elif cursor_field and cursor_param:
            cursor = resolve_path(payload, cursor_field)
            if not cursor:
                break
            next_params = {**(params or {}), str(cursor_param): str(cursor)}
        else:
            break

    logger.info(
        "json_pagination_finished",
        url=url,
        pages=result.pages_retrieved,
        items=len(result.items),
        has_more=result.has_more,
    )
    return result


class StaticFallbackAdapter(SourceAdapter):
    """Always succeeds with the configured placeholder record."""

    kind = "static"

    async def fetch(self, client: BaseScraperService, *, now: datetime) -> AdapterResult:
        options = self.tier.options
        return AdapterResult(
            candidates=[
                RawCandidate(
                    raw_title=str(options["title"]),
                    raw_link=str(options["link"]),
                    raw_published=None,
                    raw_description=options.get("description"),
                    raw_category=options.get("category"),
                )
            ]
        )


ADAPTERS: Dict[str, Callable[[FeedTier], SourceAdapter]] = {
    "rss": RssAdapter,
    "html": HtmlScrapeAdapter,
    "json": PaginatedJsonAdapter,
    "static": StaticFallbackAdapter,
}


def build_adapter(tier: FeedTier) -> SourceAdapter:
    try:
        return ADAPTERS[tier.kind](tier)
    except KeyError as exc:
        raise ValueError(f"Unsupported tier kind: {tier.kind}") from exc
