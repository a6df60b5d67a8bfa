"""Connector contract and the shared queue/dedup machinery behind it."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, Protocol, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from gifview.completion import CompletionTracker
from gifview.errors import ConfigurationError
from gifview.http import create_http_client
from gifview.models import NormalizedPost, QueueState, SourceConfig, SyncResult, TypeConfig
from gifview.queue import RateLimitedQueue
from gifview.repositories import Repositories

T = TypeVar("T")
OptionsT = TypeVar("OptionsT", bound=BaseModel)

OnSyncComplete = Callable[[int, int, int], object]
"""Called once when a sync's batch has drained: ``(queued, processed, total_items)``."""

HttpClientFactory = Callable[..., httpx.Client]


class ConnectorHandler(Protocol):
    """Protocol that all connectors must implement."""

    type: str
    name: str

    def sync(self, config: SourceConfig, on_complete: OnSyncComplete | None = None) -> SyncResult:
        """Fetch, truncate and enqueue upstream items. Returns without waiting for processing."""
        ...

    def get_queue_status(self) -> QueueState: ...

    def validate_config(self, raw_type_config: str) -> bool: ...

    def authenticate(self, config: SourceConfig) -> Any: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class QueueItem(Generic[T]):
    """One unit of queued work: the raw upstream item plus what is needed to act on it."""

    payload: T
    connector_id: str
    options: dict[str, Any] = field(default_factory=dict)


class BaseConnector(Generic[T, OptionsT]):
    """Shared helpers for all connectors.

    Subclasses provide ``fetch_items`` (upstream call, runs inside ``sync``)
    and ``process_item`` (runs on the connector's queue worker).
    """

    type: ClassVar[str]
    name: ClassVar[str]
    log_name: ClassVar[str]
    options_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        repos: Repositories,
        *,
        wait_seconds: float = 10.0,
        max_size: int = 50,
        proxy_url: str | None = None,
        content_timeout: float = 30.0,
        http_client_factory: HttpClientFactory = create_http_client,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.repos = repos
        self.wait_seconds = wait_seconds
        self.max_size = max_size
        self.proxy_url = proxy_url
        self.content_timeout = content_timeout
        self.http_client_factory = http_client_factory
        self.log = log or structlog.get_logger(__name__)
        self._queue: RateLimitedQueue[QueueItem[T]] | None = None
        self._tracker: CompletionTracker | None = None
        self._queue_lock = threading.Lock()

    # -- Queue -----------------------------------------------------------------

    def _ensure_queue(self) -> tuple[RateLimitedQueue[QueueItem[T]], CompletionTracker]:
        """The connector's single queue and its tracker, both created on first use."""
        with self._queue_lock:
            if self._queue is None or self._tracker is None:
                self._queue = RateLimitedQueue(
                    self._handle,
                    name=self.type,
                    wait_seconds=self.wait_seconds,
                    max_size=self.max_size,
                    on_reject=self._on_reject,
                    log=self.log,
                )
                self._tracker = CompletionTracker(self._queue, log=self.log)
            return self._queue, self._tracker

    @property
    def queue(self) -> RateLimitedQueue[QueueItem[T]]:
        return self._ensure_queue()[0]

    @property
    def tracker(self) -> CompletionTracker:
        return self._ensure_queue()[1]

    def get_queue_status(self) -> QueueState:
        return self.queue.status()

    def close(self, timeout: float | None = 5.0) -> None:
        """Stop the worker after its current item, if the queue was ever created."""
        with self._queue_lock:
            queue = self._queue
        if queue is not None:
            queue.stop(timeout)

    def _handle(self, item: QueueItem[T]) -> None:
        self.log.info(f"{self.log_name}.processing", item=self.describe_item(item.payload))
        self.process_item(item)

    def _on_reject(self, item: QueueItem[T]) -> None:
        self.log.warning(f"{self.log_name}.queue_full", rejected=self.describe_item(item.payload))

    # -- Config ----------------------------------------------------------------

    def parse_options(self, config: SourceConfig) -> OptionsT:
        """Validate the type-specific options of *config*; raises ConfigurationError."""
        if config.type != self.type:
            raise ConfigurationError(f"Connector {config.id} is not a {self.type} connector")
        try:
            return self.options_model.model_validate(config.options)  # type: ignore[return-value]
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {self.type} config for {config.id}: {exc}") from exc

    def validate_config(self, raw_type_config: str) -> bool:
        parsed = TypeConfig.parse(raw_type_config)
        if parsed is None or parsed.type != self.type:
            return False
        try:
            self.options_model.model_validate(parsed.options)
        except ValidationError:
            return False
        return True

    def authenticate(self, config: SourceConfig) -> Any:
        """Acquire whatever credentials a sync needs. Default: none."""
        return None

    # -- Sync ------------------------------------------------------------------

    def sync(self, config: SourceConfig, on_complete: OnSyncComplete | None = None) -> SyncResult:
        start = time.monotonic()
        log = self.log.bind(connector_id=config.id)
        log.info(f"{self.log_name}.sync_started")

        try:
            options = self.parse_options(config)
            items, total_items = self.fetch_items(config, options, log)
        except Exception:
            log.exception(f"{self.log_name}.sync_failed", elapsed_ms=int((time.monotonic() - start) * 1000))
            raise

        if not items:
            log.info(f"{self.log_name}.nothing_to_queue", total_items=total_items)
            return SyncResult.empty(total_items, f"No {self.name} items to process")

        callback = None
        if on_complete is not None:
            def callback(queued: int, processed: int) -> None:
                on_complete(queued, processed, total_items)

        queue, tracker = self._ensure_queue()
        with tracker.batch(callback) as batch:
            for payload in items:
                queued_item = QueueItem(payload=payload, connector_id=config.id, options=self.item_options(options))
                if queue.enqueue(queued_item):
                    batch.queued += 1

        state = queue.status()
        log.info(
            f"{self.log_name}.queued",
            queued=batch.queued,
            total_items=total_items,
            queue_size=state.size,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        result = SyncResult(
            total_items=total_items,
            queued=batch.queued,
            queue_size=state.size,
            processed=state.execution_count,
            message=f"Queued {batch.queued} {self.name} items for processing",
        )
        result.attach_completion(batch.future)
        return result

    # -- Storage helpers -------------------------------------------------------

    def _already_stored(self, source_link: str | None, source_key: str | None) -> bool:
        return self.repos.posts.exists(source_link, source_key)

    def _store_post(self, post: NormalizedPost) -> str | None:
        """Insert a post; None when a concurrent sync stored it first."""
        post_id = self.repos.posts.insert_if_not_exists(post)
        if post_id is None:
            self.log.info(f"{self.log_name}.duplicate_skipped", source_link=post.source_link)
        else:
            self.log.info(f"{self.log_name}.post_saved", post_id=post_id, source_link=post.source_link)
        return post_id

    def _client(self, **kwargs) -> httpx.Client:
        kwargs.setdefault("timeout", self.content_timeout)
        return self.http_client_factory(proxy_url=self.proxy_url or None, **kwargs)

    # -- Subclass hooks --------------------------------------------------------

    def fetch_items(
        self, config: SourceConfig, options: OptionsT, log: structlog.stdlib.BoundLogger
    ) -> tuple[list[T], int]:
        """Return (items to queue, total found upstream before truncation)."""
        raise NotImplementedError

    def item_options(self, options: OptionsT) -> dict[str, Any]:
        return {}

    def process_item(self, item: QueueItem[T]) -> None:
        raise NotImplementedError

    def describe_item(self, payload: T) -> str:
        return repr(payload)[:120]
