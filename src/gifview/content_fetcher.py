"""Download an article page and extract its main text.

Extraction order: the connector's CSS selector when one is configured,
otherwise a list of common article containers, then trafilatura's heuristic
extractor.
"""

from __future__ import annotations

import httpx
import structlog
import trafilatura
from bs4 import BeautifulSoup

FALLBACK_SELECTORS = (
    "article",
    ".post-content",
    ".entry-content",
    ".content",
    "main",
)

TEXT_CONTENT_TYPES = frozenset(
    {
        "text/html",
        "text/plain",
        "application/xhtml+xml",
        "application/xml",
        "text/xml",
    }
)


def _is_text_content_type(content_type: str) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime in TEXT_CONTENT_TYPES


def extract_by_selector(html: str, selector: str) -> str | None:
    """Concatenate the text of every element matching *selector*, one per line."""
    soup = BeautifulSoup(html, "lxml")
    parts = [el.get_text(" ", strip=True) for el in soup.select(selector)]
    text = "\n".join(p for p in parts if p).strip()
    return text or None


def extract_by_fallback(html: str) -> str | None:
    """First non-empty common content container, then trafilatura."""
    soup = BeautifulSoup(html, "lxml")
    for fallback in FALLBACK_SELECTORS:
        element = soup.select_one(fallback)
        if element is not None:
            text = element.get_text(" ", strip=True)
            if text:
                return text

    extracted = trafilatura.extract(html, include_comments=False, include_tables=False)
    return extracted.strip() if extracted and extracted.strip() else None


def fetch_content(
    client: httpx.Client,
    url: str,
    log: structlog.stdlib.BoundLogger,
    selector: str | None = None,
) -> str | None:
    """Fetch *url* and return its main text, or None when nothing usable was found.

    Network and parse failures are logged and reported as None; the caller
    treats that the same as an empty page.
    """
    try:
        log.info("content_fetcher.fetching", url=url)
        resp = client.get(url)

        if resp.status_code != 200:
            log.warning("content_fetcher.http_error", url=url, status=resp.status_code)
            return None

        content_type = resp.headers.get("content-type", "")
        if content_type and not _is_text_content_type(content_type):
            log.info("content_fetcher.skipped_non_text", url=url, content_type=content_type)
            return None

        html = resp.text
        if selector:
            content = extract_by_selector(html, selector)
        else:
            content = extract_by_fallback(html)

    except httpx.TimeoutException:
        log.warning("content_fetcher.timeout", url=url)
        return None
    except Exception:
        log.exception("content_fetcher.failed", url=url)
        return None

    if content:
        log.info("content_fetcher.extracted", url=url, chars=len(content))
    else:
        log.warning("content_fetcher.no_content", url=url, selector=selector)
    return content
