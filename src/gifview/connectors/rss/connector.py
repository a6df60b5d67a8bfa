"""RSS/Atom feed connector using httpx and feedparser."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx
import structlog

from gifview.connectors.base import BaseConnector, QueueItem
from gifview.connectors.rss.config import RssConfig
from gifview.content_fetcher import fetch_content
from gifview.errors import UpstreamError
from gifview.models import NormalizedPost, SourceConfig


@dataclass(frozen=True)
class RssEntry:
    title: str
    link: str
    description: str
    published: str | None
    source_name: str


def _published_iso(entry: Any) -> str | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC).isoformat()


class RssConnector(BaseConnector[RssEntry, RssConfig]):
    """Polls an RSS feed and stores each new article with its extracted page text.

    Type config::

        {"RssJsonLd": {"url": "https://example.com/feed.xml",
                       "text_css_selector": "#main-content p",
                       "max_size": 10,
                       "source": "bbc"}}
    """

    type = "RssJsonLd"
    name = "RSS Feed"
    log_name = "rss"
    options_model = RssConfig

    def fetch_items(
        self, config: SourceConfig, options: RssConfig, log: structlog.stdlib.BoundLogger
    ) -> tuple[list[RssEntry], int]:
        log.info("rss.fetching_feed", url=options.url)
        try:
            with self._client() as client:
                resp = client.get(options.url)
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"RSS feed fetch failed: {exc.response.status_code}", status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"RSS feed fetch failed: {exc}") from exc
        feed = feedparser.parse(resp.content)

        if feed.bozo:
            log.warning("rss.bozo_error", url=options.url, error=str(feed.get("bozo_exception")))

        entries = []
        for entry in feed.entries:
            link = entry.get("link")
            if not link:
                log.warning("rss.skipping_entry_no_link", title=entry.get("title"))
                continue
            entries.append(
                RssEntry(
                    title=entry.get("title") or "",
                    link=link,
                    description=entry.get("summary") or entry.get("description") or "",
                    published=_published_iso(entry),
                    source_name=str(options.source),
                )
            )

        total_items = len(entries)
        log.info("rss.feed_parsed", total_items=total_items)
        if total_items > options.max_size:
            log.info("rss.limiting", max_size=options.max_size, total_items=total_items)
        return entries[: options.max_size], total_items

    def item_options(self, options: RssConfig) -> dict[str, Any]:
        return {"selector": options.text_css_selector}

    def describe_item(self, payload: RssEntry) -> str:
        return payload.link

    def build_post(self, item: QueueItem[RssEntry]) -> NormalizedPost | None:
        """Post for an entry, or None when it is already stored or its page has no text."""
        entry = item.payload
        url = entry.link

        if self._already_stored(url, url):
            self.log.info("rss.already_exists", url=url)
            return None

        with self._client() as client:
            content = fetch_content(client, url, self.log, selector=item.options.get("selector") or None)
        if not content:
            self.log.info("rss.no_content", url=url)
            return None

        return NormalizedPost(
            content=content,
            title=entry.title,
            description=entry.description,
            topic=entry.title,
            tags=[],
            source_key=url,
            source_link=url,
            source_name=entry.source_name,
            publishing_date=entry.published,
            language="en",
            connector_id=item.connector_id,
        )

    def process_item(self, item: QueueItem[RssEntry]) -> None:
        post = self.build_post(item)
        if post is not None:
            self._store_post(post)
