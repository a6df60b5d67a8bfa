"""Attach a GIF and categories to newly stored posts.

Each run selects a handful of unenriched posts and feeds them to a slow queue
(AI calls are heavy). Per post:

1. Topic + GIF (required). No GIF means the post is left untouched and will be
   picked up again by a later run.
2. Categories (best effort). A failure here yields no categories and does not
   undo step 1.

The ``ai_checked`` stamp is written last; it is what keeps a post out of
future runs.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from gifview.ai import AITextService
from gifview.completion import CompletionTracker
from gifview.enrichment.interests import suggest_interests
from gifview.enrichment.topics import suggest_topic
from gifview.gif.search import GifFinder
from gifview.models import EnrichmentResult, EnrichPostsResult, GifResult, PostToEnrich, QueueState
from gifview.queue import RateLimitedQueue
from gifview.repositories import Repositories

OnEnrichComplete = Callable[[int, int], object]


class EnrichmentPipeline:
    def __init__(
        self,
        repos: Repositories,
        ai: AITextService,
        gif_finder: GifFinder,
        *,
        wait_seconds: float = 15.0,
        max_size: int = 50,
        posts_per_run: int = 5,
        schedule: str = "30 */2 * * *",
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.repos = repos
        self.ai = ai
        self.gif_finder = gif_finder
        self.posts_per_run = posts_per_run
        self.schedule = schedule
        self.scheduler_initialized = False
        self.log = log or structlog.get_logger(__name__)
        self.queue: RateLimitedQueue[PostToEnrich] = RateLimitedQueue(
            self._handle,
            name="enrichment",
            wait_seconds=wait_seconds,
            max_size=max_size,
            on_reject=lambda post: self.log.warning("enrich.queue_full", rejected=post.id),
            log=self.log,
        )
        self.tracker = CompletionTracker(self.queue, log=self.log)

    def enrich_posts(self, on_complete: OnEnrichComplete | None = None) -> EnrichPostsResult:
        """Queue the newest unenriched posts. Returns immediately; processing happens on the queue."""
        posts = self.repos.posts.select_unenriched(self.posts_per_run)
        if not posts:
            self.log.info("enrich.no_pending")
            return EnrichPostsResult(message="No posts to enrich", queued=0)

        self.log.info("enrich.selected", post_ids=[p.id for p in posts])
        with self.tracker.batch(on_complete) as batch:
            for post in posts:
                if self.queue.enqueue(post):
                    batch.queued += 1

        state = self.queue.status()
        self.log.info("enrich.queued", queued=batch.queued, queue_size=state.size)
        result = EnrichPostsResult(
            message=f"Queued {batch.queued} posts for enrichment",
            queued=batch.queued,
            queue_size=state.size,
            processed=state.execution_count,
        )
        result.attach_completion(batch.future)
        return result

    def _handle(self, post: PostToEnrich) -> None:
        self.log.info("enrich.processing", post_id=post.id)
        result = self.process_post(post)
        if result is None:
            self.log.info("enrich.post_skipped", post_id=post.id, reason="no_gif")
            return
        self.save_result(result)

    def process_post(self, post: PostToEnrich) -> EnrichmentResult | None:
        gif = self.topic_and_gif(post)
        if not gif.found:
            self.log.warning("enrich.no_gif", post_id=post.id)
            return None

        try:
            interests = suggest_interests(
                self.ai, self.repos.categories, post.title, post.description, post.content, self.log
            )
        except Exception:
            self.log.exception("enrich.interests_failed", post_id=post.id)
            interests = []

        return EnrichmentResult(post_id=post.id, interests=interests, gif=gif)

    def topic_and_gif(self, post: PostToEnrich) -> GifResult:
        try:
            topic = suggest_topic(self.ai, post.title, post.description, post.content, self.log)
            return self.gif_finder.find(topic)
        except Exception:
            self.log.exception("enrich.topic_or_gif_failed", post_id=post.id)
            return GifResult()

    def save_result(self, result: EnrichmentResult) -> None:
        if result.gif.found:
            self.repos.gifs.insert(url=result.gif.url, provider=result.gif.provider, post_id=result.post_id)

        linked = 0
        if result.interests:
            linked = self.repos.post_categories.batch_insert(result.post_id, result.interests)

        self.repos.posts.mark_enriched([result.post_id])
        self.log.info(
            "enrich.saved",
            post_id=result.post_id,
            gif=bool(result.gif.url),
            interests=len(result.interests),
            linked=linked,
        )

    def queue_status(self) -> QueueState:
        return self.queue.status()

    def status(self) -> dict[str, Any]:
        return {
            "scheduler": {"is_initialized": self.scheduler_initialized, "schedule": self.schedule},
            "queue": self.queue_status().model_dump(),
        }
