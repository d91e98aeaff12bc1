"""Initial community schema.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "communities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("community_id", sa.String(150), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("short_description", sa.String(120), nullable=True),
        sa.Column("attestation_type", sa.String(20), nullable=False),
        sa.Column("attestation_value", sa.String(255), nullable=False),
        sa.Column("attestation_values", sa.JSON(), nullable=True),
        sa.Column("badge_requirements", sa.JSON(), nullable=False),
        sa.Column("combination_logic", sa.String(3), nullable=True),
        sa.Column("rules", sa.JSON(), nullable=False),
        sa.Column("creator_address", sa.String(42), nullable=False),
        sa.Column("creator_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("post_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_post_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_communities_community_id", "communities", ["community_id"], unique=True
    )
    op.create_index("ix_communities_creator_address", "communities", ["creator_address"])
    op.create_index(
        "ix_communities_attestation_type", "communities", ["attestation_type"]
    )
    op.create_index("ix_communities_created_at", "communities", ["created_at"])

    op.create_table(
        "community_members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "community_id",
            sa.String(150),
            sa.ForeignKey("communities.community_id"),
            nullable=False,
        ),
        sa.Column("member_address", sa.String(42), nullable=False),
        sa.Column("attestation_value", sa.String(255), nullable=True),
        sa.Column("attestation_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_community_members_community_id", "community_members", ["community_id"]
    )
    op.create_index(
        "ix_community_members_member_address", "community_members", ["member_address"]
    )
    op.create_index(
        "ix_community_members_community_member",
        "community_members",
        ["community_id", "member_address"],
        unique=True,
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "community_id",
            sa.String(150),
            sa.ForeignKey("communities.community_id"),
            nullable=False,
        ),
        sa.Column("author_address", sa.String(42), nullable=False),
        sa.Column("author_anonymous_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("upvote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_posts_author_address", "posts", ["author_address"])
    op.create_index(
        "ix_posts_community_created", "posts", ["community_id", "created_at"]
    )

    op.create_table(
        "comments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("post_id", sa.String(36), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("community_id", sa.String(150), nullable=False),
        sa.Column(
            "parent_comment_id",
            sa.String(36),
            sa.ForeignKey("comments.id"),
            nullable=True,
        ),
        sa.Column("author_address", sa.String(42), nullable=False),
        sa.Column("author_anonymous_id", sa.String(100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("upvote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_comments_community_id", "comments", ["community_id"])
    op.create_index("ix_comments_author_address", "comments", ["author_address"])
    op.create_index("ix_comments_post_created", "comments", ["post_id", "created_at"])

    op.create_table(
        "post_upvotes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("post_id", sa.String(36), sa.ForeignKey("posts.id"), nullable=False),
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("community_id", sa.String(150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_post_upvotes_post_user",
        "post_upvotes",
        ["post_id", "user_address"],
        unique=True,
    )

    op.create_table(
        "comment_upvotes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "comment_id", sa.String(36), sa.ForeignKey("comments.id"), nullable=False
        ),
        sa.Column("user_address", sa.String(42), nullable=False),
        sa.Column("community_id", sa.String(150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_comment_upvotes_comment_user",
        "comment_upvotes",
        ["comment_id", "user_address"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_table("comment_upvotes")
    op.drop_table("post_upvotes")
    op.drop_table("comments")
    op.drop_table("posts")
    op.drop_table("community_members")
    op.drop_table("communities")
