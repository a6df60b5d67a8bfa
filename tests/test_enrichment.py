"""Tests for topic/GIF/category enrichment."""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest
import sqlalchemy as sa

from gifview.ai import AIText
from gifview.db import Gif, Interest, Post, Post2Interest
from gifview.enrichment.interests import parse_selected_ids, suggest_interests
from gifview.enrichment.pipeline import EnrichmentPipeline
from gifview.enrichment.topics import topic_user_message
from gifview.enums import InterestDepth
from gifview.models import CategoryOption, EnrichmentResult, GifResult, NormalizedPost, PostToEnrich

CATEGORIES = [
    ("A", "Sports", None, "1"),
    ("B", "Technology", None, "1"),
    ("A1", "Football", "A", "2"),
    ("B1", "Phones", "B", "2"),
    ("A1x", "Premier League", "A1", "3"),
]


def _seed_categories(engine):
    with engine.begin() as conn:
        conn.execute(
            sa.insert(Interest),
            [
                {"id": cid, "name_en": name, "parent_id": parent, "depth": depth, "active": True}
                for cid, name, parent, depth in CATEGORIES
            ],
        )


def _add_post(repos, title, created="2025-01-01T00:00:00+00:00"):
    return repos.posts.insert_if_not_exists(
        NormalizedPost(
            title=title,
            description=f"{title} description",
            content=f"{title} body",
            source_link=f"https://news.example.com/{title}",
            source_key=f"https://news.example.com/{title}",
            connector_id="bbc-news",
            created_date=created,
        )
    )


def _ai(topic="Brand: Apple", replies=None, interest_error=None):
    """Fake AI: topic prompts get *topic*; category prompts get the reply keyed by the first offered id."""
    replies = replies or {}

    def generate(prompt, **kwargs):
        if "interest categorization" not in prompt:
            return AIText(text=topic)
        if interest_error is not None:
            raise interest_error
        offered = prompt.split("(format is ID: Name):", 1)[1].split("Now, analyze", 1)[0]
        first_id = offered.strip().splitlines()[0].split(":", 1)[0]
        return AIText(text=replies.get(first_id, ""))

    ai = MagicMock()
    ai.generate.side_effect = generate
    return ai


def _finder(url="https://t/1.gif"):
    finder = MagicMock()
    finder.find.return_value = GifResult(url=url, provider="Tenor") if url else GifResult()
    return finder


@pytest.fixture
def make_pipeline(repos, log):
    pipelines = []

    def make(ai=None, finder=None, target_repos=None, **kwargs) -> EnrichmentPipeline:
        kwargs.setdefault("wait_seconds", 0)
        pipeline = EnrichmentPipeline(repos if target_repos is None else target_repos, ai or _ai(), finder or _finder(), log=log, **kwargs)
        pipelines.append(pipeline)
        return pipeline

    yield make
    for pipeline in pipelines:
        pipeline.queue.stop(timeout=5)


def _rows(engine, model):
    with engine.connect() as conn:
        return conn.execute(sa.select(model.__table__)).fetchall()


def _post(engine, post_id):
    with engine.connect() as conn:
        return conn.execute(sa.select(Post.__table__).where(Post.id == post_id)).first()


class TestParsing:
    def test_parse_selected_ids_drops_unknown(self):
        text = "A\n  B \nZ\nA\n"
        assert parse_selected_ids(text, {"A", "B"}) == ["A", "B"]
        assert parse_selected_ids("", {"A"}) == []

    def test_topic_user_message(self):
        assert topic_user_message("Title", "Desc", "Body") == "Title: Desc Body"
        assert topic_user_message(None, None, None) == ":"


class TestSuggestInterests:
    def test_each_level_sees_children_of_previous_choice(self, log):
        categories = MagicMock()
        categories.active_by_depth.side_effect = [
            [CategoryOption(id="A", name="Sports"), CategoryOption(id="B", name="Tech")],
            [CategoryOption(id="A1", name="Football")],
            [],
        ]
        ai = MagicMock()
        ai.generate.side_effect = [AIText(text="A\nB\nQ"), AIText(text="A1")]

        selected = suggest_interests(ai, categories, "t", "d", "c", log)

        assert selected == ["A", "B", "A1"]
        assert categories.active_by_depth.call_args_list == [
            call(InterestDepth.MAIN, None),
            call(InterestDepth.SUB, ["A", "B"]),
            call(InterestDepth.SUB_SUB, ["A1"]),
        ]
        assert ai.generate.call_count == 2

    def test_no_top_level_choice_stops_descent(self, log):
        categories = MagicMock()
        categories.active_by_depth.return_value = [CategoryOption(id="A", name="Sports")]
        ai = MagicMock()
        ai.generate.return_value = AIText(text="nothing relevant")

        assert suggest_interests(ai, categories, "t", "d", "c", log) == []
        categories.active_by_depth.assert_called_once_with(InterestDepth.MAIN, None)

    def test_against_the_store(self, engine, repos, log):
        _seed_categories(engine)
        ai = _ai(replies={"A": "A", "A1": "A1", "A1x": "A1x"})

        selected = suggest_interests(ai, repos.categories, "Derby day", "", "", log)

        assert selected == ["A", "A1", "A1x"]


class TestEnrichmentPipeline:
    def test_no_posts(self, make_pipeline):
        result = make_pipeline().enrich_posts()
        assert result.message == "No posts to enrich"
        assert result.queued == 0
        assert result.completion is None

    def test_enriches_post(self, make_pipeline, engine, repos):
        _seed_categories(engine)
        post_id = _add_post(repos, "derby")
        calls = []
        pipeline = make_pipeline(ai=_ai(replies={"A": "A", "A1": "A1", "A1x": "A1x"}))

        result = pipeline.enrich_posts(lambda *args: calls.append(args))

        assert result.message == "Queued 1 posts for enrichment"
        assert result.completion.result(timeout=10).processed == 1
        assert calls == [(1, 1)]

        (gif,) = _rows(engine, Gif)
        assert (gif.url, gif.provider, gif.post_id) == ("https://t/1.gif", "Tenor", post_id)
        links = _rows(engine, Post2Interest)
        assert sorted(link.interest_id for link in links) == ["A", "A1", "A1x"]
        assert _post(engine, post_id).ai_checked is not None

    def test_post_without_gif_is_left_for_a_later_run(self, make_pipeline, engine, repos):
        _seed_categories(engine)
        post_id = _add_post(repos, "quiet")
        ai = _ai(replies={"A": "A"})
        pipeline = make_pipeline(ai=ai, finder=_finder(url=None))

        pipeline.enrich_posts().completion.result(timeout=10)

        assert _rows(engine, Gif) == []
        assert _rows(engine, Post2Interest) == []
        assert _post(engine, post_id).ai_checked is None
        # No category prompt was sent
        assert ai.generate.call_count == 1
        assert pipeline.repos.posts.select_unenriched(5)[0].id == post_id

    def test_topic_failure_is_abandonment(self, make_pipeline, engine, repos):
        post_id = _add_post(repos, "broken")
        ai = MagicMock()
        ai.generate.side_effect = RuntimeError("model unavailable")
        finder = _finder()

        make_pipeline(ai=ai, finder=finder).enrich_posts().completion.result(timeout=10)

        finder.find.assert_not_called()
        assert _post(engine, post_id).ai_checked is None

    def test_category_failure_keeps_gif(self, make_pipeline, engine, repos):
        _seed_categories(engine)
        post_id = _add_post(repos, "partial")
        pipeline = make_pipeline(ai=_ai(interest_error=RuntimeError("rate limited")))

        pipeline.enrich_posts().completion.result(timeout=10)

        assert len(_rows(engine, Gif)) == 1
        assert _rows(engine, Post2Interest) == []
        assert _post(engine, post_id).ai_checked is not None

    def test_newest_posts_first_and_limited(self, make_pipeline, repos):
        _add_post(repos, "old", created="2025-01-01T00:00:00+00:00")
        _add_post(repos, "newer", created="2025-01-02T00:00:00+00:00")
        _add_post(repos, "newest", created="2025-01-03T00:00:00+00:00")
        finder = _finder()
        pipeline = make_pipeline(finder=finder, posts_per_run=2)

        result = pipeline.enrich_posts()
        result.completion.result(timeout=10)

        assert result.queued == 2
        assert [p.title for p in repos.posts.select_unenriched(5)] == ["old"]

    def test_save_writes_enrichment_stamp_last(self, make_pipeline):
        repos = MagicMock()
        pipeline = make_pipeline(target_repos=repos)

        pipeline.save_result(
            EnrichmentResult(post_id="p1", interests=["A", "A1"], gif=GifResult(url="https://t/1.gif", provider="Tenor"))
        )

        assert [name for name, _, _ in repos.mock_calls] == [
            "gifs.insert",
            "post_categories.batch_insert",
            "posts.mark_enriched",
        ]
        repos.posts.mark_enriched.assert_called_once_with(["p1"])

    def test_process_post_returns_none_without_gif(self, make_pipeline):
        pipeline = make_pipeline(finder=_finder(url=None), target_repos=MagicMock())
        assert pipeline.process_post(PostToEnrich(id="p1", title="t")) is None

    def test_status(self, make_pipeline):
        pipeline = make_pipeline(schedule="0 * * * *")
        status = pipeline.status()

        assert status["scheduler"] == {"is_initialized": False, "schedule": "0 * * * *"}
        assert status["queue"]["size"] == 0
        assert status["queue"]["is_running"] is True
