"""GIF search providers (Tenor, Giphy) over httpx."""

from __future__ import annotations

from typing import Any, ClassVar

import httpx

from gifview.enums import GifProvider

DEFAULT_LIMIT = 25


class GifSearchProvider:
    """One search API. Subclasses define the endpoint, query params and result shape."""

    provider: ClassVar[GifProvider]
    endpoint: ClassVar[str]

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def params(self, keyword: str, limit: int) -> dict[str, Any]:
        raise NotImplementedError

    def extract_urls(self, payload: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def search(self, client: httpx.Client, keyword: str, limit: int = DEFAULT_LIMIT) -> list[str]:
        """Candidate GIF URLs for *keyword* in provider rank order."""
        resp = client.get(self.endpoint, params=self.params(keyword, limit))
        resp.raise_for_status()
        return [url for url in self.extract_urls(resp.json()) if url]


class TenorProvider(GifSearchProvider):
    provider = GifProvider.TENOR
    endpoint = "https://tenor.googleapis.com/v2/search"

    def params(self, keyword: str, limit: int) -> dict[str, Any]:
        return {"q": keyword, "key": self.api_key, "media_filter": "gif", "limit": limit}

    def extract_urls(self, payload: dict[str, Any]) -> list[str]:
        return [
            ((item.get("media_formats") or {}).get("gif") or {}).get("url")
            for item in payload.get("results") or []
        ]


class GiphyProvider(GifSearchProvider):
    provider = GifProvider.GIPHY
    endpoint = "https://api.giphy.com/v1/gifs/search"

    def params(self, keyword: str, limit: int) -> dict[str, Any]:
        return {"q": keyword, "api_key": self.api_key, "limit": limit, "rating": "pg-13"}

    def extract_urls(self, payload: dict[str, Any]) -> list[str]:
        return [
            ((item.get("images") or {}).get("downsized_medium") or {}).get("url")
            for item in payload.get("data") or []
        ]
