"""Spotify connector configuration."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator

DEFAULT_MARKET = "US"
DEFAULT_MAX_ITEMS = 5
# Spotify's new-releases endpoint caps ``limit`` at 50
MAX_LIMIT = 50

TOKEN_URL = "https://accounts.spotify.com/api/token"
NEW_RELEASES_URL = "https://api.spotify.com/v1/browse/new-releases"


class SpotifyConfig(BaseModel):
    """Options under the ``spotify`` key; a bare ``"spotify"`` type config means all defaults."""

    market: str = DEFAULT_MARKET
    max_size: int = DEFAULT_MAX_ITEMS

    @field_validator("max_size", mode="before")
    @classmethod
    def _clamp_max_size(cls, value: Any) -> int:
        if value is None or int(value) < 1:
            return DEFAULT_MAX_ITEMS
        return min(int(value), MAX_LIMIT)

    @field_validator("market", mode="before")
    @classmethod
    def _default_market(cls, value: Any) -> str:
        return (value or DEFAULT_MARKET).upper()
