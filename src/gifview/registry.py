"""Process-wide table of connector handlers keyed by source type."""

from __future__ import annotations

import threading

import structlog

from gifview.connectors.base import ConnectorHandler
from gifview.models import QueueState, TypeConfig


def parse_connector_type(raw_type_config: str | None) -> str | None:
    """Resolve the source type named by a ``connector_type`` value.

    ``"spotify"`` -> ``"spotify"``; ``'{"RssJsonLd": {...}}'`` -> ``"RssJsonLd"``;
    invalid JSON or an empty object -> None.
    """
    parsed = TypeConfig.parse(raw_type_config)
    return parsed.type if parsed else None


class ConnectorRegistry:
    """Maps a source type to its handler. Safe for concurrent reads and writes."""

    def __init__(self, log: structlog.stdlib.BoundLogger | None = None) -> None:
        self._handlers: dict[str, ConnectorHandler] = {}
        self._lock = threading.RLock()
        self._log = log or structlog.get_logger(__name__)

    def register(self, handler: ConnectorHandler) -> None:
        """Add a handler; re-registering a type overwrites it with a warning."""
        with self._lock:
            if handler.type in self._handlers:
                self._log.warning("registry.overwriting", type=handler.type)
            self._handlers[handler.type] = handler
        self._log.info("registry.registered", type=handler.type, name=handler.name)

    def get(self, connector_type: str) -> ConnectorHandler | None:
        with self._lock:
            return self._handlers.get(connector_type)

    def is_registered(self, connector_type: str) -> bool:
        with self._lock:
            return connector_type in self._handlers

    def list_types(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def list_handlers(self) -> list[ConnectorHandler]:
        with self._lock:
            return list(self._handlers.values())

    def all_queue_statuses(self) -> dict[str, QueueState]:
        """Queue state per type; a handler whose status call fails is left out."""
        with self._lock:
            handlers = list(self._handlers.items())

        statuses: dict[str, QueueState] = {}
        for connector_type, handler in handlers:
            try:
                statuses[connector_type] = handler.get_queue_status()
            except Exception:
                self._log.exception("registry.queue_status_failed", type=connector_type)
        return statuses

    @staticmethod
    def parse_type(raw_type_config: str | None) -> str | None:
        return parse_connector_type(raw_type_config)
