import textwrap
from pathlib import Path

from app.models.feed_sources import DEFAULT_MAX_PAGES, FEED_TYPES, get_all_feeds, get_feed
from services.message_normalization import IDENTIFIER_RULES


def _write_config(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


def test_feeds_happy_path(tmp_path):
    cfg = tmp_path / "feeds.yml"
    _write_config(
        cfg,
        """
        feeds:
          - key: MARADMIN
            name: "MARADMINs"
            feed_type: maradmin
            base_url: https://www.marines.mil
            window_days: 14
            tiers:
              - kind: rss
                url: https://example.mil/rss
              - kind: html
                url: https://example.mil/list
                container: div.listing
              - kind: static
                title: Pending
                link: https://example.mil/
        """,
    )

    feeds = get_all_feeds(path=cfg)
    assert len(feeds) == 1
    feed = feeds[0]
    assert feed.key == "maradmin"
    assert [t.kind for t in feed.tiers] == ["rss", "html", "static"]
    assert feed.tiers[0].url == "https://example.mil/rss"
    assert feed.tiers[1].options["container"] == "div.listing"
    assert feed.effective_window_days() == 14
    assert get_feed("Maradmin", path=cfg) is feed


def test_feeds_skip_invalid_entries(tmp_path):
    cfg = tmp_path / "feeds.yml"
    _write_config(
        cfg,
        """
        feeds:
          - key: unknown_type
            name: Unknown
            feed_type: navadmin
            tiers:
              - kind: rss
                url: https://example.mil/rss
          - key: no_tiers
            name: No tiers
            feed_type: alnav
            tiers: []
          - key: bad_tiers
            name: Bad tiers
            feed_type: alnav
            tiers:
              - kind: ftp
                url: ftp://example.mil
              - kind: html
                url: https://example.mil/list
          - key: valid
            name: Valid
            feed_type: alnav
            tiers:
              - kind: json
                url: https://api.example.com
                items_path: items
                title_field: title
                date_field: date
          - key: valid
            name: Duplicate
            feed_type: alnav
            tiers:
              - kind: rss
                url: https://example.mil/rss
          - "not a mapping"
        """,
    )

    feeds = get_all_feeds(path=cfg)
    assert [f.key for f in feeds] == ["valid"]
    assert feeds[0].name == "Valid"
    assert feeds[0].base_url is None
    assert feeds[0].tiers[0].max_pages == DEFAULT_MAX_PAGES


def test_missing_or_broken_config_yields_no_feeds(tmp_path):
    assert get_all_feeds(path=tmp_path / "absent.yml") == []

    cfg = tmp_path / "broken.yml"
    cfg.write_text("feeds: [unclosed\n", encoding="utf-8")
    assert get_all_feeds(path=cfg) == []


def test_shipped_registry_covers_every_feed_type():
    feeds = get_all_feeds()
    assert {f.feed_type for f in feeds} == set(FEED_TYPES)
    assert set(FEED_TYPES) == set(IDENTIFIER_RULES)
    for feed in feeds:
        assert feed.tiers, feed.key


def test_html_tier_accepts_a_list_of_pages(tmp_path):
    cfg = tmp_path / "feeds.yml"
    _write_config(
        cfg,
        """
        feeds:
          - key: forms
            name: Forms
            feed_type: dodforms
            tiers:
              - kind: html
                urls:
                  - https://example.mil/forms/a/
                  - https://example.mil/forms/b/
                container: table
              - kind: html
                container: table
        """,
    )

    feeds = get_all_feeds(path=cfg)

    assert len(feeds) == 1
    tiers = feeds[0].tiers
    # The second tier has no page to read and is skipped.
    assert len(tiers) == 1
    assert tiers[0].urls == ["https://example.mil/forms/a/", "https://example.mil/forms/b/"]
    assert tiers[0].url == "https://example.mil/forms/a/"
    assert tiers[0].describe() == "html:https://example.mil/forms/a/ (+1 more)"


def test_shipped_dod_forms_feed_reads_every_listing_page():
    feed = get_feed("dodforms")
    assert feed is not None
    assert feed.feed_type == "dodforms"
    (tier,) = feed.tiers
    assert tier.kind == "html"
    assert len(tier.urls) == 7
    assert all(url.startswith("https://www.esd.whs.mil/Directives/forms/dd") for url in tier.urls)


def test_shipped_alnav_scrape_reads_previous_year_too():
    feed = get_feed("alnav")
    html_tier = next(t for t in feed.tiers if t.kind == "html")
    assert [u.rsplit("ALNAV-", 1)[1] for u in html_tier.urls] == ["{year}/", "{prev_year}/"]
