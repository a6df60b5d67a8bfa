"""Narrow data-access layer used by the sync and enrichment core.

Every write that can race (two syncs inserting the same post, two enrichment
passes linking the same category) goes through INSERT ... ON CONFLICT DO
NOTHING so the loser's insert is a no-op rather than an error.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite

from gifview.db import Connector, Gif, Interest, Post, Post2Interest, PostMedia, new_id, now_iso
from gifview.models import CategoryOption, NormalizedPost, PostToEnrich, SourceConfig


_SOURCE_COLUMNS = sa.select(Connector.id, Connector.connector_type, Connector.fetch_period_minutes, Connector.active)


def _insert_ignore(conn: sa.Connection, model: type, values: dict[str, Any] | list[dict[str, Any]]):
    """Dialect-aware INSERT ... ON CONFLICT DO NOTHING returning new ids."""
    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(values).on_conflict_do_nothing()
    else:
        raise NotImplementedError(f"Conflict-safe insert not supported on {dialect}")
    return conn.execute(stmt.returning(model.id))


class PostRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    def exists(self, source_link: str | None = None, source_key: str | None = None) -> bool:
        """True if any post matches the link or the key."""
        if not source_link and not source_key:
            return False

        conditions = []
        if source_link:
            conditions.append(Post.source_link == source_link)
        if source_key:
            conditions.append(Post.source_key == source_key)

        with self.engine.connect() as conn:
            row = conn.execute(sa.select(Post.id).where(sa.or_(*conditions)).limit(1)).first()
        return row is not None

    def insert_if_not_exists(self, post: NormalizedPost) -> str | None:
        """Insert a post. Returns its id, or None when (link, key) already existed."""
        values = post.model_dump()
        values["id"] = new_id()
        with self.engine.begin() as conn:
            return _insert_ignore(conn, Post, values).scalar()

    def select_unenriched(self, limit: int) -> list[PostToEnrich]:
        """Newest-first posts with no enrichment timestamp and not soft-deleted."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                sa.select(Post.id, Post.title, Post.description, Post.content)
                .where(Post.ai_checked.is_(None), Post.is_deleted.is_(False))
                .order_by(Post.created_date.desc())
                .limit(limit)
            ).fetchall()
        return [PostToEnrich(id=r.id, title=r.title, description=r.description, content=r.content) for r in rows]

    def mark_enriched(self, post_ids: Sequence[str]) -> None:
        if not post_ids:
            return
        with self.engine.begin() as conn:
            conn.execute(sa.update(Post).where(Post.id.in_(list(post_ids))).values(ai_checked=now_iso()))


class CategoryRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    def active_by_depth(self, depth: str, parent_ids: Iterable[str] | None = None) -> list[CategoryOption]:
        """Active, non-deleted categories at *depth*, optionally restricted to children of *parent_ids*."""
        stmt = sa.select(Interest.id, Interest.name_en).where(
            Interest.active.is_(True),
            Interest.depth == depth,
            Interest.is_deleted.is_(False),
        )
        parents = list(parent_ids or [])
        if parents:
            stmt = stmt.where(Interest.parent_id.in_(parents))

        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(Interest.id)).fetchall()
        return [CategoryOption(id=r.id, name=r.name_en or "") for r in rows]


class GifRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    def existing_urls(self, urls: Sequence[str]) -> set[str]:
        if not urls:
            return set()
        with self.engine.connect() as conn:
            rows = conn.execute(sa.select(Gif.url).where(Gif.url.in_(list(urls)))).fetchall()
        return {r.url for r in rows}

    def insert(self, *, url: str, provider: str, post_id: str) -> str:
        gif_id = new_id()
        with self.engine.begin() as conn:
            conn.execute(sa.insert(Gif).values(id=gif_id, url=url, provider=provider, post_id=post_id))
        return gif_id


class PostCategoryRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    def batch_insert(self, post_id: str, category_ids: Sequence[str]) -> int:
        """Link a post to categories, skipping existing links. Returns links created."""
        if not category_ids:
            return 0
        values = [
            {"id": new_id(), "post_id": post_id, "interest_id": cid, "is_deleted": False}
            for cid in dict.fromkeys(category_ids)
        ]
        with self.engine.begin() as conn:
            return len(_insert_ignore(conn, Post2Interest, values).fetchall())


class PostMediaRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    def insert(self, *, post_id: str, media_type: str, media_url: str, metadata: dict[str, Any] | None = None) -> str:
        media_id = new_id()
        with self.engine.begin() as conn:
            conn.execute(
                sa.insert(PostMedia).values(
                    {
                        PostMedia.id: media_id,
                        PostMedia.post_id: post_id,
                        PostMedia.media_type: media_type,
                        PostMedia.media_url: media_url,
                        PostMedia.meta: metadata,
                        PostMedia.is_deleted: False,
                    }
                )
            )
        return media_id


class SourceConfigRepository:
    def __init__(self, engine: sa.engine.Engine) -> None:
        self.engine = engine

    @staticmethod
    def _to_model(row) -> SourceConfig:
        return SourceConfig.from_raw(row.id, row.connector_type, row.fetch_period_minutes, row.active)

    def get(self, source_id: str) -> SourceConfig | None:
        with self.engine.connect() as conn:
            row = conn.execute(_SOURCE_COLUMNS.where(Connector.id == source_id)).first()
        return self._to_model(row) if row else None

    def list_active(self) -> list[SourceConfig]:
        with self.engine.connect() as conn:
            rows = conn.execute(_SOURCE_COLUMNS.where(Connector.active.is_(True)).order_by(Connector.id)).fetchall()
        return [self._to_model(r) for r in rows]

    def upsert(self, source_id: str, raw_type_config: str, fetch_period_minutes: int, active: bool) -> None:
        """Create or update one connector row (used to seed from config.yaml)."""
        values = {
            "id": source_id,
            "connector_type": raw_type_config,
            "fetch_period_minutes": fetch_period_minutes,
            "active": active,
        }
        updates = {k: v for k, v in values.items() if k != "id"}
        with self.engine.begin() as conn:
            dialect = postgresql if conn.dialect.name == "postgresql" else sqlite
            stmt = dialect.insert(Connector).values(values)
            conn.execute(stmt.on_conflict_do_update(index_elements=[Connector.id], set_=updates))


@dataclass
class Repositories:
    posts: PostRepository
    categories: CategoryRepository
    gifs: GifRepository
    post_categories: PostCategoryRepository
    post_media: PostMediaRepository
    source_configs: SourceConfigRepository

    @classmethod
    def from_engine(cls, engine: sa.engine.Engine) -> Repositories:
        return cls(
            posts=PostRepository(engine),
            categories=CategoryRepository(engine),
            gifs=GifRepository(engine),
            post_categories=PostCategoryRepository(engine),
            post_media=PostMediaRepository(engine),
            source_configs=SourceConfigRepository(engine),
        )
