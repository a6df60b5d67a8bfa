"""Connectors, posts, categories, gifs and post media.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "connectors",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("connector_type", sa.Text, nullable=True),
        sa.Column("fetch_period_minutes", sa.Integer, nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("topic", sa.Text, nullable=True),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("connector_id", sa.Text, nullable=False),
        sa.Column("source_key", sa.Text, nullable=True),
        sa.Column("source_link", sa.Text, nullable=True),
        sa.Column("source_name", sa.Text, nullable=True),
        sa.Column("language", sa.Text, nullable=True),
        sa.Column("publishing_date", sa.Text, nullable=True),
        sa.Column("ai_checked", sa.Text, nullable=True),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_date", sa.Text, nullable=False),
        sa.UniqueConstraint("source_link", "source_key", name="uq_posts_source"),
    )
    op.create_index("idx_posts_ai_checked", "posts", ["ai_checked"])
    op.create_index("idx_posts_created_date", "posts", ["created_date"])
    op.create_index("idx_posts_connector_id", "posts", ["connector_id"])

    op.create_table(
        "interests",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name_en", sa.Text, nullable=True),
        sa.Column("color", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, nullable=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("parent_id", sa.Text, nullable=True),
        sa.Column("depth", sa.Text, nullable=True),
    )
    op.create_index("idx_interests_depth", "interests", ["depth", "parent_id"])

    op.create_table(
        "post2interest",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("post_id", sa.Text, nullable=False),
        sa.Column("interest_id", sa.Text, nullable=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("post_id", "interest_id", name="uq_post2interest"),
    )

    op.create_table(
        "gifs",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("post_id", sa.Text, nullable=True),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("provider", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, nullable=False),
        sa.Column("updated_at", sa.Text, nullable=False),
    )
    op.create_index("idx_gifs_url", "gifs", ["url"])
    op.create_index("idx_gifs_post_id", "gifs", ["post_id"])

    op.create_table(
        "post_media",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("post_id", sa.Text, nullable=False),
        sa.Column("media_type", sa.Text, nullable=True),
        sa.Column("media_url", sa.Text, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.Text, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("post_media")
    op.drop_index("idx_gifs_post_id", table_name="gifs")
    op.drop_index("idx_gifs_url", table_name="gifs")
    op.drop_table("gifs")
    op.drop_table("post2interest")
    op.drop_index("idx_interests_depth", table_name="interests")
    op.drop_table("interests")
    op.drop_index("idx_posts_connector_id", table_name="posts")
    op.drop_index("idx_posts_created_date", table_name="posts")
    op.drop_index("idx_posts_ai_checked", table_name="posts")
    op.drop_table("posts")
    op.drop_table("connectors")
