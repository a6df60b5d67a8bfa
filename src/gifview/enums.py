"""Enumerations shared by connectors and enrichment."""

from __future__ import annotations

from enum import StrEnum


class PostSource(StrEnum):
    """Origin tag stored on every post."""
    BBC = "bbc"
    SPOTIFY = "spotify"
    REDDIT = "reddit"


class InterestDepth(StrEnum):
    """Category hierarchy levels, top to leaf."""
    MAIN = "1"
    SUB = "2"
    SUB_SUB = "3"


class GifProvider(StrEnum):
    TENOR = "Tenor"
    GIPHY = "Giphy"
