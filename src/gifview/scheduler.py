"""Decide which active sources are due and dispatch their syncs.

Last-sync times are held in memory only; after a restart every source is due
on the first tick.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from gifview.connectors.base import ConnectorHandler
from gifview.errors import ConfigurationError, ConnectorNotFoundError
from gifview.models import SourceConfig, SyncResult
from gifview.registry import ConnectorRegistry
from gifview.repositories import SourceConfigRepository


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncScheduler:
    def __init__(
        self,
        registry: ConnectorRegistry,
        source_configs: SourceConfigRepository,
        *,
        is_production: bool = True,
        clock: Callable[[], datetime] = _utcnow,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.registry = registry
        self.source_configs = source_configs
        self.is_production = is_production
        self.clock = clock
        self.log = log or structlog.get_logger(__name__)
        self._last_sync_times: dict[str, datetime] = {}
        self._lock = threading.Lock()

    # -- Bookkeeping -----------------------------------------------------------

    def last_sync_time(self, source_id: str) -> datetime | None:
        with self._lock:
            return self._last_sync_times.get(source_id)

    def _mark_synced(self, source_id: str, at: datetime) -> None:
        with self._lock:
            self._last_sync_times[source_id] = at

    def is_due(self, config: SourceConfig, now: datetime) -> bool:
        last = self.last_sync_time(config.id)
        return last is None or now - last >= timedelta(minutes=config.fetch_period_minutes)

    def _completion_logger(self, handler: ConnectorHandler, source_id: str, trigger: str):
        def on_complete(queued: int, processed: int, total_items: int) -> None:
            self.log.info(
                "sync.completed",
                trigger=trigger,
                connector=handler.name,
                connector_id=source_id,
                queued=queued,
                processed=processed,
                total_items=total_items,
            )

        return on_complete

    # -- Scheduled -------------------------------------------------------------

    def tick(self) -> None:
        """Sync every active, registered, due source, one after another."""
        if not self.is_production:
            return

        now = self.clock()
        try:
            configs = self.source_configs.list_active()
        except Exception:
            self.log.exception("sync.tick_failed")
            return

        for config in configs:
            if config.type is None:
                self.log.warning("sync.invalid_type", connector_id=config.id)
                continue

            handler = self.registry.get(config.type)
            # Rows for other subsystems share the table
            if handler is None:
                continue

            if not self.is_due(config, now):
                continue

            self.log.info("sync.scheduled", connector=handler.name, connector_id=config.id)
            try:
                handler.sync(config, self._completion_logger(handler, config.id, "scheduled"))
            except Exception:
                self.log.exception("sync.scheduled_failed", connector_id=config.id)
                continue
            self._mark_synced(config.id, now)

    # -- Manual ----------------------------------------------------------------

    def sync_by_id(self, source_id: str) -> SyncResult:
        """Sync one source now, ignoring its period. Errors propagate to the caller."""
        self.log.info("sync.manual_requested", connector_id=source_id)

        config = self.source_configs.get(source_id)
        if config is None:
            raise ConnectorNotFoundError(f"Connector not found: {source_id}")
        if config.type is None:
            raise ConfigurationError(f"Invalid connector type for: {source_id}")

        handler = self.registry.get(config.type)
        if handler is None:
            raise ConnectorNotFoundError(f"No handler registered for connector type: {config.type}")

        self.log.info("sync.manual", connector=handler.name, connector_id=source_id)
        result = handler.sync(config, self._completion_logger(handler, source_id, "manual"))
        self._mark_synced(source_id, self.clock())
        return result

    def sync_by_type(self, connector_type: str) -> dict[str, SyncResult]:
        """Sync every active source of *connector_type*; per-source failures are captured, not raised."""
        self.log.info("sync.by_type_requested", type=connector_type)

        handler = self.registry.get(connector_type)
        if handler is None:
            raise ConnectorNotFoundError(f"No handler registered for connector type: {connector_type}")

        results: dict[str, SyncResult] = {}
        for config in self.source_configs.list_active():
            if config.type != connector_type:
                continue
            try:
                results[config.id] = handler.sync(config, self._completion_logger(handler, config.id, "manual"))
            except Exception as exc:
                self.log.exception("sync.by_type_failed", connector_id=config.id)
                results[config.id] = SyncResult.failed(exc)
                continue
            self._mark_synced(config.id, self.clock())

        return results

    def status(self) -> dict[str, Any]:
        with self._lock:
            times = {source_id: at.isoformat() for source_id, at in self._last_sync_times.items()}
        return {"registered_types": self.registry.list_types(), "last_sync_times": times}
