"""Pick one unused GIF for a post from its extracted topic lines.

A topic suggestion looks like::

    Brand: Apple, iPhone
    Emotion: excited

Each keyword becomes one search, routed to the provider that suits its area,
and searches run in area priority order until one yields a GIF that is not
already stored.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from gifview.enums import GifProvider
from gifview.gif.providers import DEFAULT_LIMIT, GifSearchProvider, GiphyProvider, TenorProvider
from gifview.http import create_http_client
from gifview.models import GifResult
from gifview.repositories import GifRepository


@dataclass(frozen=True)
class SearchMapping:
    priority: int
    provider: GifProvider


# Lower priority number is searched first
SEARCH_MAPPINGS: dict[str, SearchMapping] = {
    "Brand": SearchMapping(1, GifProvider.TENOR),
    "Product": SearchMapping(2, GifProvider.TENOR),
    "Event": SearchMapping(3, GifProvider.GIPHY),
    "Action": SearchMapping(4, GifProvider.GIPHY),
    "Sports team": SearchMapping(5, GifProvider.GIPHY),
    "Celebrity": SearchMapping(6, GifProvider.TENOR),
    "Location": SearchMapping(7, GifProvider.TENOR),
    "Emotion": SearchMapping(8, GifProvider.GIPHY),
    "Weather": SearchMapping(9, GifProvider.GIPHY),
    "Other": SearchMapping(10, GifProvider.TENOR),
}


@dataclass(frozen=True)
class GifSearch:
    provider: GifProvider
    keyword: str
    area: str


def parse_topic_line(line: str) -> tuple[str, list[str]]:
    """``"Brand: Apple, iPhone"`` -> ``("Brand", ["Apple", "iPhone"])``."""
    area, sep, rest = line.partition(":")
    if not sep:
        return area.strip(), []
    return area.strip(), [k.strip() for k in rest.split(",") if k.strip()]


def compute_searches(topic: str) -> list[GifSearch]:
    """Searches for every recognised area, stable-sorted by area priority. Unknown areas are dropped."""
    ranked: list[tuple[int, GifSearch]] = []
    for line in topic.splitlines():
        area, keywords = parse_topic_line(line)
        mapping = SEARCH_MAPPINGS.get(area)
        if mapping is None:
            continue
        ranked.extend((mapping.priority, GifSearch(mapping.provider, kw, area)) for kw in keywords)
    ranked.sort(key=lambda pair: pair[0])
    return [search for _, search in ranked]


class GifFinder:
    def __init__(
        self,
        gifs: GifRepository,
        *,
        tenor_api_key: str = "",
        giphy_api_key: str = "",
        proxy_url: str | None = None,
        limit: int = DEFAULT_LIMIT,
        http_client_factory: Callable[..., httpx.Client] = create_http_client,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.gifs = gifs
        self.providers: dict[GifProvider, GifSearchProvider] = {
            GifProvider.TENOR: TenorProvider(tenor_api_key),
            GifProvider.GIPHY: GiphyProvider(giphy_api_key),
        }
        self.proxy_url = proxy_url
        self.limit = limit
        self.http_client_factory = http_client_factory
        self.log = log or structlog.get_logger(__name__)

    def find(self, topic: str) -> GifResult:
        """First candidate not already in the gifs table; an empty result when none qualifies.

        A failing search is logged and the next one is tried.
        """
        searches = compute_searches(topic)
        if not searches:
            self.log.info("gif.no_searches", topic=topic[:200])
            return GifResult()

        with self.http_client_factory(proxy_url=self.proxy_url or None) as client:
            for search in searches:
                try:
                    urls = self.providers[search.provider].search(client, search.keyword, self.limit)
                except Exception:
                    self.log.exception("gif.search_failed", provider=search.provider, keyword=search.keyword)
                    continue

                if not urls:
                    self.log.info("gif.no_results", provider=search.provider, keyword=search.keyword)
                    continue

                existing = self.gifs.existing_urls(urls)
                fresh = next((url for url in urls if url not in existing), None)
                if fresh is None:
                    self.log.info("gif.all_results_used", provider=search.provider, keyword=search.keyword)
                    continue

                self.log.info("gif.found", provider=search.provider, keyword=search.keyword, area=search.area)
                return GifResult(url=fresh, provider=str(search.provider))

        return GifResult()
