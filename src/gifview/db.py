"""Database engine, ORM models, and timestamp helpers."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Connector(Base):
    """One configured external source (the persisted SourceConfig)."""

    __tablename__ = "connectors"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=new_id)
    connector_type: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    fetch_period_minutes: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    active: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=sa.false())


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (sa.UniqueConstraint("source_link", "source_key", name="uq_posts_source"),)

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=new_id)
    title: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    topic: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(sa.JSON, nullable=True)
    connector_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    source_key: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    source_link: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    source_name: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    language: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    publishing_date: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    ai_checked: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    content: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=sa.false())
    created_date: Mapped[str] = mapped_column(sa.Text, nullable=False, default=now_iso)


class Interest(Base):
    """Category node; depth "1" is top level, "3" is leaf."""

    __tablename__ = "interests"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True)
    name_en: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    color: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    active: Mapped[bool | None] = mapped_column(sa.Boolean, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=sa.false())
    parent_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    depth: Mapped[str | None] = mapped_column(sa.Text, nullable=True)


class Post2Interest(Base):
    __tablename__ = "post2interest"
    __table_args__ = (sa.UniqueConstraint("post_id", "interest_id", name="uq_post2interest"),)

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    interest_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=sa.false())


class Gif(Base):
    __tablename__ = "gifs"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=new_id)
    post_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    url: Mapped[str] = mapped_column(sa.Text, nullable=False)
    provider: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[str] = mapped_column(sa.Text, nullable=False, default=now_iso)
    updated_at: Mapped[str] = mapped_column(sa.Text, nullable=False, default=now_iso)


class PostMedia(Base):
    __tablename__ = "post_media"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    media_type: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    media_url: Mapped[str] = mapped_column(sa.Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", sa.JSON, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(sa.Boolean, default=False, server_default=sa.false())
    created_at: Mapped[str] = mapped_column(sa.Text, nullable=False, default=now_iso)


sa.Index("idx_posts_ai_checked", Post.ai_checked)
sa.Index("idx_posts_created_date", Post.created_date)
sa.Index("idx_posts_connector_id", Post.connector_id)
sa.Index("idx_interests_depth", Interest.depth, Interest.parent_id)
sa.Index("idx_gifs_url", Gif.url)
sa.Index("idx_gifs_post_id", Gif.post_id)


def _set_sqlite_pragmas(dbapi_conn, connection_record):  # noqa: N802
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def get_engine(database_url: str) -> sa.engine.Engine:
    """Create a SQLAlchemy engine for the given database URL."""
    if database_url.startswith("sqlite"):
        # Queue workers share the engine across threads
        engine = sa.create_engine(database_url, echo=False, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine
    return sa.create_engine(database_url, echo=False)


metadata = Base.metadata
