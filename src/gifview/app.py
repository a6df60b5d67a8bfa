"""Process-wide objects, built once at startup."""

from __future__ import annotations

from dataclasses import dataclass, field

import sqlalchemy as sa
import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from gifview.ai import AITextService
from gifview.connectors.rss.connector import RssConnector
from gifview.connectors.spotify.connector import SpotifyConnector
from gifview.enrichment.pipeline import EnrichmentPipeline
from gifview.gif.search import GifFinder
from gifview.registry import ConnectorRegistry
from gifview.repositories import Repositories
from gifview.scheduler import SyncScheduler
from gifview.settings import Settings

SYNC_JOB_ID = "sync_tick"
ENRICHMENT_JOB_ID = "enrichment_run"


@dataclass
class AppContext:
    settings: Settings
    engine: sa.engine.Engine
    repos: Repositories
    registry: ConnectorRegistry
    scheduler: SyncScheduler
    enrichment: EnrichmentPipeline
    log: structlog.stdlib.BoundLogger
    background: BackgroundScheduler | None = field(default=None, repr=False)

    def run_scheduled_enrichment(self) -> None:
        if not self.settings.is_production:
            self.log.info("enrich.skipped_non_production", environment=self.settings.environment)
            return

        self.log.info("enrich.scheduled_run")
        try:
            result = self.enrichment.enrich_posts(
                lambda queued, processed: self.log.info(
                    "enrich.scheduled_completed", queued=queued, processed=processed
                )
            )
        except Exception:
            self.log.exception("enrich.scheduled_failed")
            return
        self.log.info("enrich.scheduled_result", message=result.message, queued=result.queued)

    def start_background_jobs(self) -> BackgroundScheduler:
        """Start the sync tick (interval) and the enrichment run (cron) in background threads."""
        if self.background is not None:
            self.log.warning("app.background_already_started")
            return self.background

        background = BackgroundScheduler(timezone="UTC")
        background.add_job(
            self.scheduler.tick,
            trigger=IntervalTrigger(seconds=self.settings.sync_tick_seconds),
            id=SYNC_JOB_ID,
            name="Sync due connectors",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        background.add_job(
            self.run_scheduled_enrichment,
            trigger=CronTrigger.from_crontab(self.settings.enrichment_cron, timezone="UTC"),
            id=ENRICHMENT_JOB_ID,
            name="Enrich new posts",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        background.start()
        self.background = background
        self.enrichment.scheduler_initialized = True
        self.log.info(
            "app.background_started",
            registered_types=self.registry.list_types(),
            sync_tick_seconds=self.settings.sync_tick_seconds,
            enrichment_cron=self.settings.enrichment_cron,
        )
        return background

    def shutdown(self) -> None:
        if self.background is not None:
            self.background.shutdown(wait=False)
            self.background = None
        for handler in self.registry.list_handlers():
            handler.close()
        self.enrichment.queue.stop(timeout=5)
        self.log.info("app.stopped")


def build_app_context(settings: Settings, engine: sa.engine.Engine, log: structlog.stdlib.BoundLogger | None = None) -> AppContext:
    log = log or structlog.get_logger("gifview")
    repos = Repositories.from_engine(engine)
    proxy_url = settings.proxy_url or None

    registry = ConnectorRegistry(log=log)
    registry.register(
        RssConnector(
            repos,
            wait_seconds=settings.rss_queue_wait_seconds,
            max_size=settings.queue_max_size,
            proxy_url=proxy_url,
            content_timeout=settings.content_fetch_timeout,
            log=log,
        )
    )
    registry.register(
        SpotifyConnector(
            repos,
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            wait_seconds=settings.spotify_queue_wait_seconds,
            max_size=settings.queue_max_size,
            proxy_url=proxy_url,
            content_timeout=settings.content_fetch_timeout,
            log=log,
        )
    )

    gif_finder = GifFinder(
        repos.gifs,
        tenor_api_key=settings.tenor_api_key,
        giphy_api_key=settings.giphy_api_key,
        proxy_url=proxy_url,
        log=log,
    )
    enrichment = EnrichmentPipeline(
        repos,
        AITextService(api_key=settings.openai_api_key),
        gif_finder,
        wait_seconds=settings.enrichment_queue_wait_seconds,
        max_size=settings.queue_max_size,
        posts_per_run=settings.enrichment_posts_per_run,
        schedule=settings.enrichment_cron,
        log=log,
    )
    scheduler = SyncScheduler(
        registry,
        repos.source_configs,
        is_production=settings.is_production,
        log=log,
    )
    return AppContext(
        settings=settings,
        engine=engine,
        repos=repos,
        registry=registry,
        scheduler=scheduler,
        enrichment=enrichment,
        log=log,
    )
