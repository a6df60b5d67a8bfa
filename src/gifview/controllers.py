"""Request-shaped wrappers over the sync and enrichment core.

Each function returns a JSON-ready dict and never raises: propagated errors
become ``{"status": "error", "message": ...}``.
"""

from __future__ import annotations

from typing import Any

from gifview.app import AppContext
from gifview.errors import ConnectorNotFoundError


def _error(exc: BaseException, **extra: Any) -> dict[str, Any]:
    return {"status": "error", **extra, "message": str(exc)}


def sync_by_id(ctx: AppContext, connector_id: str) -> dict[str, Any]:
    try:
        result = ctx.scheduler.sync_by_id(connector_id)
    except ConnectorNotFoundError as exc:
        ctx.log.warning("controller.sync_not_found", connector_id=connector_id, error=str(exc))
        return {"status": "not_found", "connector_id": connector_id, "message": str(exc)}
    except Exception as exc:
        ctx.log.exception("controller.sync_failed", connector_id=connector_id)
        return _error(exc, connector_id=connector_id)
    return {"status": "success", "connector_id": connector_id, **result.model_dump()}


def sync_by_type(ctx: AppContext, connector_type: str) -> dict[str, Any]:
    try:
        results = ctx.scheduler.sync_by_type(connector_type)
    except ConnectorNotFoundError as exc:
        return {"status": "not_found", "connector_type": connector_type, "message": str(exc)}
    except Exception as exc:
        ctx.log.exception("controller.sync_type_failed", connector_type=connector_type)
        return _error(exc, connector_type=connector_type)
    return {
        "status": "success",
        "connector_type": connector_type,
        "synced_count": len(results),
        "results": {source_id: r.model_dump() for source_id, r in results.items()},
    }


def sync_status(ctx: AppContext) -> dict[str, Any]:
    try:
        return {"status": "success", **ctx.scheduler.status()}
    except Exception as exc:
        ctx.log.exception("controller.sync_status_failed")
        return _error(exc)


def queue_statuses(ctx: AppContext) -> dict[str, Any]:
    statuses = ctx.registry.all_queue_statuses()
    return {"status": "success", "queues": {t: s.model_dump() for t, s in statuses.items()}}


def queue_status(ctx: AppContext, connector_type: str) -> dict[str, Any]:
    handler = ctx.registry.get(connector_type)
    if handler is None:
        return {
            "status": "not_found",
            "connector_type": connector_type,
            "message": f"Connector type not found: {connector_type}",
        }
    try:
        state = handler.get_queue_status()
    except Exception as exc:
        ctx.log.exception("controller.queue_status_failed", connector_type=connector_type)
        return _error(exc, connector_type=connector_type)
    return {"status": "success", "connector_type": connector_type, "name": handler.name, **state.model_dump()}


def connector_types(ctx: AppContext) -> dict[str, Any]:
    return {
        "status": "success",
        "types": [{"type": h.type, "name": h.name} for h in ctx.registry.list_handlers()],
    }


def trigger_enrichment(ctx: AppContext) -> dict[str, Any]:
    ctx.log.info("controller.enrich_requested")
    try:
        result = ctx.enrichment.enrich_posts(
            lambda queued, processed: ctx.log.info("enrich.manual_completed", queued=queued, processed=processed)
        )
    except Exception as exc:
        ctx.log.exception("controller.enrich_failed")
        return _error(exc)

    payload = {"status": "success", **result.model_dump()}
    if result.queued > 0:
        payload["message"] = "Posts queued for enrichment. Processing happens in background."
    return payload


def enrichment_status(ctx: AppContext) -> dict[str, Any]:
    try:
        return {"status": "success", "data": ctx.enrichment.status()}
    except Exception as exc:
        ctx.log.exception("controller.enrich_status_failed")
        return _error(exc)
