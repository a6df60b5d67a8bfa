"""Click CLI: serve, manual sync and enrichment triggers, status."""

from __future__ import annotations

import concurrent.futures
import json
import time
from collections.abc import Iterable
from typing import Any

import click

from gifview import controllers
from gifview.app import AppContext, build_app_context
from gifview.config import load_config
from gifview.db import get_engine
from gifview.errors import ConnectorNotFoundError, GifviewError
from gifview.logging import setup_logging


def _echo_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _exit_on_error(payload: dict[str, Any]) -> None:
    if payload.get("status") != "success":
        raise SystemExit(1)


def _app(ctx: click.Context) -> AppContext:
    obj = ctx.obj
    if "app" not in obj:
        settings = obj["config"].settings
        log = setup_logging(
            settings.log_dir,
            "gifview",
            level=settings.log_level,
            json_console=settings.is_production,
            environment=settings.environment,
        )
        obj["app"] = build_app_context(settings, get_engine(settings.database_url), log=log)
        ctx.call_on_close(obj["app"].shutdown)
    return obj["app"]


def _wait(futures: Iterable[concurrent.futures.Future | None], timeout: float) -> None:
    pending = [f for f in futures if f is not None and not f.cancelled()]
    if not pending:
        return
    click.echo(f"Waiting for queued work to finish (timeout {timeout:.0f}s)...")
    done, not_done = concurrent.futures.wait(pending, timeout=timeout)
    for future in done:
        if not future.cancelled():
            completion = future.result()
            click.echo(f"Done: queued={completion.queued} processed={completion.processed}")
    if not_done:
        click.echo("Timed out before the queue drained; remaining items are dropped on exit.")


wait_option = click.option("--no-wait", is_flag=True, help="Return after queuing instead of waiting for the queue to drain.")
timeout_option = click.option("--timeout", default=600.0, type=float, show_default=True, help="Max seconds to wait for the queue.")


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config YAML file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """gifview: connector sync and post enrichment."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)


@cli.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the sync tick and the enrichment schedule until interrupted."""
    app = _app(ctx)
    app.start_background_jobs()
    click.echo(f"Serving {', '.join(app.registry.list_types())} (environment: {app.settings.environment}). Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("Stopping...")


@cli.command()
@click.pass_context
def seed(ctx: click.Context) -> None:
    """Create or update connector rows from the config file."""
    app = _app(ctx)
    seeds = ctx.obj["config"].connectors
    if not seeds:
        click.echo("No connectors in config.")
        return
    for s in seeds:
        app.repos.source_configs.upsert(s.id, s.raw_type_config, s.fetch_period_minutes, s.active)
        click.echo(f"  {s.id}: {s.raw_type_config} (every {s.fetch_period_minutes} min, active={s.active})")


@cli.command("sync")
@click.argument("connector_id")
@wait_option
@timeout_option
@click.pass_context
def sync_cmd(ctx: click.Context, connector_id: str, no_wait: bool, timeout: float) -> None:
    """Sync one connector now, ignoring its fetch period."""
    app = _app(ctx)
    try:
        result = app.scheduler.sync_by_id(connector_id)
    except ConnectorNotFoundError as exc:
        _echo_json({"status": "not_found", "connector_id": connector_id, "message": str(exc)})
        raise SystemExit(1) from exc
    except GifviewError as exc:
        _echo_json({"status": "error", "connector_id": connector_id, "message": str(exc)})
        raise SystemExit(1) from exc

    _echo_json({"status": "success", "connector_id": connector_id, **result.model_dump()})
    if not no_wait:
        _wait([result.completion], timeout)


@cli.command("sync-type")
@click.argument("connector_type")
@wait_option
@timeout_option
@click.pass_context
def sync_type_cmd(ctx: click.Context, connector_type: str, no_wait: bool, timeout: float) -> None:
    """Sync every active connector of one type."""
    app = _app(ctx)
    try:
        results = app.scheduler.sync_by_type(connector_type)
    except ConnectorNotFoundError as exc:
        _echo_json({"status": "not_found", "connector_type": connector_type, "message": str(exc)})
        raise SystemExit(1) from exc

    _echo_json(
        {
            "status": "success",
            "connector_type": connector_type,
            "synced_count": len(results),
            "results": {source_id: r.model_dump() for source_id, r in results.items()},
        }
    )
    if not no_wait:
        # Earlier batches on the same queue are superseded; the last one covers the full drain
        _wait([r.completion for r in results.values()], timeout)


@cli.command()
@click.pass_context
def types(ctx: click.Context) -> None:
    """List registered connector types."""
    payload = controllers.connector_types(_app(ctx))
    for entry in payload["types"]:
        click.echo(f"  {entry['type']}: {entry['name']}")


@cli.command()
@click.argument("connector_type", required=False)
@click.pass_context
def queues(ctx: click.Context, connector_type: str | None) -> None:
    """Show queue state for all connector types, or one."""
    app = _app(ctx)
    if connector_type:
        payload = controllers.queue_status(app, connector_type)
    else:
        payload = controllers.queue_statuses(app)
    _echo_json(payload)
    _exit_on_error(payload)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show registered types and in-process last sync times."""
    payload = controllers.sync_status(_app(ctx))
    _echo_json(payload)
    _exit_on_error(payload)


@cli.command()
@wait_option
@timeout_option
@click.pass_context
def enrich(ctx: click.Context, no_wait: bool, timeout: float) -> None:
    """Queue the newest unenriched posts for enrichment."""
    app = _app(ctx)
    try:
        result = app.enrichment.enrich_posts()
    except Exception as exc:
        app.log.exception("cli.enrich_failed")
        _echo_json({"status": "error", "message": str(exc)})
        raise SystemExit(1) from exc

    _echo_json({"status": "success", **result.model_dump()})
    if not no_wait:
        _wait([result.completion], timeout)


@cli.command("enrich-status")
@click.pass_context
def enrich_status(ctx: click.Context) -> None:
    """Show the enrichment schedule and queue state."""
    payload = controllers.enrichment_status(_app(ctx))
    _echo_json(payload)
    _exit_on_error(payload)
