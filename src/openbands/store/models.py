"""SQLAlchemy models for communities, memberships, posts and votes.

Counters (``member_count``, ``post_count``, ``comment_count``,
``upvote_count``) are denormalized copies of row counts. They are only ever
changed in the same transaction as the rows they count, and can be rebuilt
with ``CommunityRepository.reconcile_counters``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all openbands models."""


# ── Communities ──────────────────────────────────────────────────


class Community(Base):
    """A badge-gated community."""

    __tablename__ = "communities"
    __table_args__ = (
        Index("ix_communities_attestation_type", "attestation_type"),
        Index("ix_communities_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(String(150), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    short_description: Mapped[str | None] = mapped_column(
        String(120), nullable=True, default=None
    )
    attestation_type: Mapped[str] = mapped_column(String(20))
    attestation_value: Mapped[str] = mapped_column(String(255))
    attestation_values: Mapped[list[str] | None] = mapped_column(
        JSON, nullable=True, default=None
    )
    badge_requirements: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    combination_logic: Mapped[str | None] = mapped_column(
        String(3), nullable=True, default=None
    )
    rules: Mapped[list[str]] = mapped_column(JSON, default=list)
    creator_address: Mapped[str] = mapped_column(String(42), index=True)
    creator_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    member_count: Mapped[int] = mapped_column(Integer, default=0)
    post_count: Mapped[int] = mapped_column(Integer, default=0)
    last_post_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    members: Mapped[list[CommunityMember]] = relationship(
        back_populates="community",
        cascade="all, delete-orphan",
    )


class CommunityMember(Base):
    """A wallet's membership, with the badge snapshot taken at join time."""

    __tablename__ = "community_members"
    __table_args__ = (
        Index(
            "ix_community_members_community_member",
            "community_id",
            "member_address",
            unique=True,
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(
        ForeignKey("communities.community_id"), index=True
    )
    member_address: Mapped[str] = mapped_column(String(42), index=True)
    attestation_value: Mapped[str | None] = mapped_column(
        String(255), nullable=True, default=None
    )
    attestation_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    community: Mapped[Community] = relationship(back_populates="members")


# ── Content ──────────────────────────────────────────────────────


class Post(Base):
    """A post inside a community."""

    __tablename__ = "posts"
    __table_args__ = (Index("ix_posts_community_created", "community_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(ForeignKey("communities.community_id"))
    author_address: Mapped[str] = mapped_column(String(42), index=True)
    author_anonymous_id: Mapped[str] = mapped_column(String(100))
    title: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    content: Mapped[str] = mapped_column(Text)
    upvote_count: Mapped[int] = mapped_column(Integer, default=0)
    comment_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Comment(Base):
    """A comment on a post, optionally replying to another comment."""

    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_post_created", "post_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"))
    community_id: Mapped[str] = mapped_column(String(150), index=True)
    parent_comment_id: Mapped[str | None] = mapped_column(
        ForeignKey("comments.id"), nullable=True, default=None
    )
    author_address: Mapped[str] = mapped_column(String(42), index=True)
    author_anonymous_id: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text)
    upvote_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


# ── Votes ────────────────────────────────────────────────────────


class PostUpvote(Base):
    """Presence of a row means the user has upvoted the post."""

    __tablename__ = "post_upvotes"
    __table_args__ = (
        Index("ix_post_upvotes_post_user", "post_id", "user_address", unique=True),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"))
    user_address: Mapped[str] = mapped_column(String(42))
    community_id: Mapped[str] = mapped_column(String(150))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CommentUpvote(Base):
    """Presence of a row means the user has upvoted the comment."""

    __tablename__ = "comment_upvotes"
    __table_args__ = (
        Index(
            "ix_comment_upvotes_comment_user", "comment_id", "user_address", unique=True
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    comment_id: Mapped[str] = mapped_column(ForeignKey("comments.id"))
    user_address: Mapped[str] = mapped_column(String(42))
    community_id: Mapped[str] = mapped_column(String(150))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
