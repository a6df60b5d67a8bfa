"""Exception hierarchy for sync and enrichment failures."""

from __future__ import annotations


class GifviewError(Exception):
    """Base class for errors surfaced to callers of the core."""


class ConfigurationError(GifviewError):
    """A source config is missing a required field or names no usable type."""


class ConnectorNotFoundError(GifviewError):
    """A manual trigger referenced an unknown source id or unregistered type."""


class UpstreamError(GifviewError):
    """An external source failed during the fetch or auth step of a sync."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
