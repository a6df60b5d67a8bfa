"""RSS connector configuration."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator

from gifview.enums import PostSource

DEFAULT_MAX_ITEMS = 5


class RssConfig(BaseModel):
    """Options under the ``RssJsonLd`` key of a connector's type config."""

    url: str
    text_css_selector: str = ""
    max_size: int = DEFAULT_MAX_ITEMS
    source: PostSource = PostSource.BBC

    @field_validator("url")
    @classmethod
    def _url_required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("No RSS URL found in connector config")
        return value.strip()

    @field_validator("max_size", mode="before")
    @classmethod
    def _default_max_size(cls, value: Any) -> int:
        if value is None or int(value) < 1:
            return DEFAULT_MAX_ITEMS
        return int(value)

    @field_validator("text_css_selector", mode="before")
    @classmethod
    def _blank_selector(cls, value: Any) -> str:
        return value or ""
