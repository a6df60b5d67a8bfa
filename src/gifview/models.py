"""Pydantic models for validation and serialization."""

from __future__ import annotations

import json
from concurrent.futures import Future
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from gifview.db import now_iso

logger = structlog.get_logger(__name__)

DEFAULT_FETCH_PERIOD_MINUTES = 60


class TypeConfig(BaseModel):
    """Parsed form of the ``connector_type`` column.

    The column holds either a bare type name (``"spotify"``) or a JSON object
    whose key names the type and whose value carries its options
    (``{"RssJsonLd": {"url": "..."}}``).
    """

    model_config = ConfigDict(frozen=True)

    type: str
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def parse(cls, raw: str | None) -> TypeConfig | None:
        if not raw or not raw.strip():
            return None
        raw = raw.strip()

        if not raw.startswith("{"):
            return cls(type=raw)

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("type_config.invalid_json", raw=raw)
            return None

        if not isinstance(parsed, dict) or not parsed:
            return None

        # First key wins when a row carries more than one
        type_name, options = next(iter(parsed.items()))
        return cls(type=type_name, options=options if isinstance(options, dict) else {})


class SourceConfig(BaseModel):
    """One configured external source, as seen by the sync core (read-only)."""

    id: str
    raw_type_config: str | None = None
    type_config: TypeConfig | None = None
    fetch_period_minutes: int = DEFAULT_FETCH_PERIOD_MINUTES
    active: bool = False

    @field_validator("fetch_period_minutes", mode="before")
    @classmethod
    def _default_period(cls, value: Any) -> int:
        if value is None or int(value) < 1:
            return DEFAULT_FETCH_PERIOD_MINUTES
        return int(value)

    @classmethod
    def from_raw(
        cls,
        source_id: str,
        raw_type_config: str | None,
        fetch_period_minutes: int | None = None,
        active: bool | None = False,
    ) -> SourceConfig:
        return cls(
            id=source_id,
            raw_type_config=raw_type_config,
            type_config=TypeConfig.parse(raw_type_config),
            fetch_period_minutes=fetch_period_minutes,
            active=bool(active),
        )

    @property
    def type(self) -> str | None:
        return self.type_config.type if self.type_config else None

    @property
    def options(self) -> dict[str, Any]:
        return self.type_config.options if self.type_config else {}


class NormalizedPost(BaseModel):
    """Common shape every connector produces per external item."""

    title: str | None = None
    description: str | None = None
    content: str | None = None
    topic: str | None = None
    tags: list[str] = Field(default_factory=list)
    source_key: str | None = None
    source_link: str | None = None
    source_name: str | None = None
    language: str = "en"
    publishing_date: str | None = None
    connector_id: str
    is_deleted: bool = False
    created_date: str = Field(default_factory=now_iso)


class QueueState(BaseModel):
    """Read-only snapshot of a rate-limited queue."""

    model_config = ConfigDict(frozen=True)

    size: int
    is_running: bool
    execution_count: int
    rejection_count: int
    active: bool = False
    is_empty: bool
    is_full: bool
    # Monotonic transition counter; lets observers discard stale snapshots
    version: int = 0


class SyncResult(BaseModel):
    total_items: int
    queued: int
    queue_size: int
    processed: int
    message: str

    _completion: Future | None = PrivateAttr(default=None)

    @property
    def completion(self) -> Future | None:
        """Resolves with a ``BatchCompletion`` once the queued batch drains; None when nothing was queued."""
        return self._completion

    def attach_completion(self, future: Future) -> None:
        self._completion = future

    @classmethod
    def empty(cls, total_items: int, message: str) -> SyncResult:
        return cls(total_items=total_items, queued=0, queue_size=0, processed=0, message=message)

    @classmethod
    def failed(cls, error: BaseException) -> SyncResult:
        return cls.empty(0, f"Sync failed: {error}")


class GifResult(BaseModel):
    url: str = ""
    provider: str = ""

    @property
    def found(self) -> bool:
        return bool(self.url)


class CategoryOption(BaseModel):
    id: str
    name: str


class PostToEnrich(BaseModel):
    id: str
    title: str | None = None
    description: str | None = None
    content: str | None = None


class EnrichmentResult(BaseModel):
    post_id: str
    interests: list[str] = Field(default_factory=list)
    gif: GifResult


class EnrichPostsResult(BaseModel):
    message: str
    queued: int
    queue_size: int | None = None
    processed: int | None = None

    _completion: Future | None = PrivateAttr(default=None)

    @property
    def completion(self) -> Future | None:
        return self._completion

    def attach_completion(self, future: Future) -> None:
        self._completion = future
