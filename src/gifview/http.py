"""Shared HTTP client factory for httpx-based connectors and providers."""

from __future__ import annotations

import httpx

BROWSER_USER_AGENT = "Mozilla/5.0 (compatible; GifviewBot/1.0; +https://gifview.app)"

DEFAULT_TIMEOUT = 30.0


def create_http_client(
    *,
    proxy_url: str | None = None,
    user_agent: str = BROWSER_USER_AGENT,
    timeout: float = DEFAULT_TIMEOUT,
    follow_redirects: bool = True,
) -> httpx.Client:
    """Create an httpx.Client with a bot User-Agent, bounded timeout and optional proxy."""
    headers = {"User-Agent": user_agent}
    return httpx.Client(
        headers=headers,
        timeout=timeout,
        proxy=proxy_url,
        follow_redirects=follow_redirects,
    )
