"""Community repository: communities, memberships, posts, comments, votes.

All mutating methods add objects to the session and flush, but do NOT
commit.  The caller controls transaction boundaries via
``session.commit()``, so a row change and the counter it affects are
committed together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select, update

from openbands.core.errors import StorageError
from openbands.store.models import (
    Comment,
    CommentUpvote,
    Community,
    CommunityMember,
    Post,
    PostUpvote,
)

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

COMMUNITY_SORTS = ("newest", "popular", "active")
POST_SORTS = ("newest", "top", "hot")


def _decrement_floored(column: InstrumentedAttribute[int]) -> ColumnElement[int]:
    """``column - 1`` but never below zero, evaluated by the database."""
    return case((column > 0, column - 1), else_=0)


class CommunityRepository:
    """Async repository for the community store."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _count(self, stmt: Select[Any]) -> int:
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        result = await self._session.execute(count_stmt)
        return int(result.scalar_one())

    # ── Community ────────────────────────────────────────────────

    async def create_community(
        self,
        community_id: str,
        name: str,
        description: str,
        *,
        attestation_type: str,
        attestation_value: str,
        creator_address: str,
        attestation_values: list[str] | None = None,
        badge_requirements: list[dict[str, Any]] | None = None,
        combination_logic: str | None = None,
        short_description: str | None = None,
        rules: list[str] | None = None,
        creator_verified_at: datetime | None = None,
    ) -> Community:
        """Create a community and return it with its generated ID."""
        community = Community(
            community_id=community_id,
            name=name,
            description=description,
            short_description=short_description,
            attestation_type=attestation_type,
            attestation_value=attestation_value,
            attestation_values=attestation_values,
            badge_requirements=badge_requirements or [],
            combination_logic=combination_logic,
            rules=rules or [],
            creator_address=creator_address.lower(),
            creator_verified_at=creator_verified_at,
        )
        self._session.add(community)
        await self._session.flush()
        return community

    async def get_community(self, community_id: str) -> Community | None:
        """Load an active community by its public ``community_id``."""
        stmt = select(Community).where(
            Community.community_id == community_id,
            Community.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_communities(
        self,
        *,
        attestation_type: str | None = None,
        sort: str = "newest",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Community], int]:
        """List active communities. Returns (page, total matching)."""
        stmt = select(Community).where(Community.is_active.is_(True))
        if attestation_type is not None:
            stmt = stmt.where(Community.attestation_type == attestation_type)

        total = await self._count(stmt)

        if sort == "popular":
            stmt = stmt.order_by(Community.member_count.desc(), Community.created_at.desc())
        elif sort == "active":
            stmt = stmt.order_by(
                Community.last_post_at.desc().nulls_last(), Community.created_at.desc()
            )
        else:
            stmt = stmt.order_by(Community.created_at.desc())

        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all()), total

    async def list_all_communities(self) -> list[Community]:
        """All active communities (used for duplicate-requirement checks)."""
        stmt = select(Community).where(Community.is_active.is_(True))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def increment_member_count(self, community_id: str) -> None:
        stmt = (
            update(Community)
            .where(Community.community_id == community_id)
            .values(member_count=Community.member_count + 1)
        )
        await self._session.execute(stmt)

    # ── Membership ───────────────────────────────────────────────

    async def get_membership(
        self, community_id: str, member_address: str, *, include_inactive: bool = False
    ) -> CommunityMember | None:
        """Membership for ``(community_id, address)``, if any.

        Only active rows are returned unless ``include_inactive`` is set;
        the unique index admits at most one row either way.
        """
        stmt = select(CommunityMember).where(
            CommunityMember.community_id == community_id,
            CommunityMember.member_address == member_address.lower(),
        )
        if not include_inactive:
            stmt = stmt.where(CommunityMember.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_membership(
        self,
        community_id: str,
        member_address: str,
        *,
        attestation_value: str | None = None,
        attestation_verified_at: datetime | None = None,
    ) -> CommunityMember:
        """Insert a membership row.

        Raises ``sqlalchemy.exc.IntegrityError`` on a duplicate
        ``(community_id, member_address)``.
        """
        member = CommunityMember(
            community_id=community_id,
            member_address=member_address.lower(),
            attestation_value=attestation_value,
            attestation_verified_at=attestation_verified_at,
        )
        self._session.add(member)
        await self._session.flush()
        return member

    async def reactivate_membership(
        self,
        member: CommunityMember,
        *,
        attestation_value: str | None,
        attestation_verified_at: datetime | None,
    ) -> CommunityMember:
        """Mark an inactive membership active again with a fresh badge snapshot."""
        member.is_active = True
        member.attestation_value = attestation_value
        member.attestation_verified_at = attestation_verified_at
        await self._session.flush()
        return member

    # ── Post─────────────────────────────────────────────────────

    async def create_post(
        self,
        community_id: str,
        author_address: str,
        author_anonymous_id: str,
        content: str,
        *,
        title: str | None = None,
    ) -> Post:
        """Create a post and bump the community's post counter."""
        post = Post(
            community_id=community_id,
            author_address=author_address.lower(),
            author_anonymous_id=author_anonymous_id,
            title=title,
            content=content,
        )
        self._session.add(post)
        await self._session.flush()
        stmt = (
            update(Community)
            .where(Community.community_id == community_id)
            .values(post_count=Community.post_count + 1, last_post_at=post.created_at)
        )
        await self._session.execute(stmt)
        return post

    async def get_post(self, post_id: str) -> Post | None:
        """Load an active post."""
        stmt = select(Post).where(Post.id == post_id, Post.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_posts(
        self,
        community_id: str,
        *,
        sort: str = "newest",
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Post], int]:
        """List a community's active posts. Returns (page, total matching)."""
        stmt = select(Post).where(
            Post.community_id == community_id, Post.is_active.is_(True)
        )
        total = await self._count(stmt)

        if sort == "hot":
            stmt = stmt.order_by(Post.upvote_count.desc(), Post.created_at.desc())
        elif sort == "top":
            stmt = stmt.order_by(Post.upvote_count.desc())
        else:
            stmt = stmt.order_by(Post.created_at.desc())

        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all()), total

    # ── Comment ──────────────────────────────────────────────────

    async def create_comment(
        self,
        post: Post,
        author_address: str,
        author_anonymous_id: str,
        content: str,
        *,
        parent_comment_id: str | None = None,
    ) -> Comment:
        """Create a comment and bump the post's comment counter."""
        comment = Comment(
            post_id=post.id,
            community_id=post.community_id,
            parent_comment_id=parent_comment_id,
            author_address=author_address.lower(),
            author_anonymous_id=author_anonymous_id,
            content=content,
        )
        self._session.add(comment)
        await self._session.flush()
        stmt = (
            update(Post)
            .where(Post.id == post.id)
            .values(comment_count=Post.comment_count + 1)
        )
        await self._session.execute(stmt)
        return comment

    async def get_comment(self, comment_id: str) -> Comment | None:
        """Load an active comment."""
        stmt = select(Comment).where(Comment.id == comment_id, Comment.is_active.is_(True))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_comments(self, post_id: str) -> list[Comment]:
        """Active comments for a post, oldest first."""
        stmt = (
            select(Comment)
            .where(Comment.post_id == post_id, Comment.is_active.is_(True))
            .order_by(Comment.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def comment_depth(self, comment_id: str, *, limit: int) -> int:
        """Nesting depth of a reply to ``comment_id`` (1 = reply to a top-level comment).

        Stops walking once ``limit`` is reached.
        """
        depth = 1
        parent_id = await self._parent_of(comment_id)
        while parent_id is not None and depth < limit:
            parent_id = await self._parent_of(parent_id)
            depth += 1
        return depth

    async def _parent_of(self, comment_id: str) -> str | None:
        stmt = select(Comment.parent_comment_id).where(Comment.id == comment_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    # ── Upvotes ──────────────────────────────────────────────────

    async def get_post_upvote(self, post_id: str, user_address: str) -> PostUpvote | None:
        stmt = select(PostUpvote).where(
            PostUpvote.post_id == post_id,
            PostUpvote.user_address == user_address.lower(),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_post_upvote(self, post: Post, user_address: str) -> int:
        """Record an upvote and return the post's new upvote count."""
        self._session.add(
            PostUpvote(
                post_id=post.id,
                user_address=user_address.lower(),
                community_id=post.community_id,
            )
        )
        await self._session.flush()
        return await self._adjust_count(Post, Post.upvote_count, post.id, +1)

    async def remove_post_upvote(self, upvote: PostUpvote) -> int:
        """Delete an upvote and return the post's new upvote count."""
        await self._session.delete(upvote)
        await self._session.flush()
        return await self._adjust_count(Post, Post.upvote_count, upvote.post_id, -1)

    async def get_comment_upvote(
        self, comment_id: str, user_address: str
    ) -> CommentUpvote | None:
        stmt = select(CommentUpvote).where(
            CommentUpvote.comment_id == comment_id,
            CommentUpvote.user_address == user_address.lower(),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_comment_upvote(self, comment: Comment, user_address: str) -> int:
        """Record an upvote and return the comment's new upvote count."""
        self._session.add(
            CommentUpvote(
                comment_id=comment.id,
                user_address=user_address.lower(),
                community_id=comment.community_id,
            )
        )
        await self._session.flush()
        return await self._adjust_count(Comment, Comment.upvote_count, comment.id, +1)

    async def remove_comment_upvote(self, upvote: CommentUpvote) -> int:
        """Delete an upvote and return the comment's new upvote count."""
        await self._session.delete(upvote)
        await self._session.flush()
        return await self._adjust_count(
            Comment, Comment.upvote_count, upvote.comment_id, -1
        )

    async def _adjust_count(
        self,
        model: type[Post] | type[Comment],
        column: InstrumentedAttribute[int],
        row_id: str,
        delta: int,
    ) -> int:
        """Apply ``+1`` / ``-1`` (floored at 0) in SQL and return the new value."""
        new_value = column + 1 if delta > 0 else _decrement_floored(column)
        stmt = (
            update(model)
            .where(model.id == row_id)
            .values({column.key: new_value})
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            msg = f"{model.__name__} not found: {row_id}"
            raise StorageError(msg)
        value = await self._session.execute(select(column).where(model.id == row_id))
        return int(value.scalar_one())

    # ── Reconciliation ───────────────────────────────────────────

    def _counter_targets(self) -> list[tuple[Any, Any, Any]]:
        """(model, counter column, correlated true-count subquery) triples."""
        members = (
            select(func.count(CommunityMember.id))
            .where(
                CommunityMember.community_id == Community.community_id,
                CommunityMember.is_active.is_(True),
            )
            .correlate(Community)
            .scalar_subquery()
        )
        posts = (
            select(func.count(Post.id))
            .where(Post.community_id == Community.community_id, Post.is_active.is_(True))
            .correlate(Community)
            .scalar_subquery()
        )
        comments = (
            select(func.count(Comment.id))
            .where(Comment.post_id == Post.id, Comment.is_active.is_(True))
            .correlate(Post)
            .scalar_subquery()
        )
        post_votes = (
            select(func.count(PostUpvote.id))
            .where(PostUpvote.post_id == Post.id)
            .correlate(Post)
            .scalar_subquery()
        )
        comment_votes = (
            select(func.count(CommentUpvote.id))
            .where(CommentUpvote.comment_id == Comment.id)
            .correlate(Comment)
            .scalar_subquery()
        )
        return [
            (Community, Community.member_count, members),
            (Community, Community.post_count, posts),
            (Post, Post.comment_count, comments),
            (Post, Post.upvote_count, post_votes),
            (Comment, Comment.upvote_count, comment_votes),
        ]

    async def reconcile_counters(self, *, post_id: str | None = None) -> dict[str, int]:
        """Recompute denormalized counters from source rows.

        Returns ``{"<table>.<column>": rows corrected}``. With ``post_id``,
        only that post's counters are rebuilt.
        """
        corrected: dict[str, int] = {}
        for model, column, actual in self._counter_targets():
            if post_id is not None and model is not Post:
                continue
            stmt = update(model).where(column != actual)
            if post_id is not None:
                stmt = stmt.where(model.id == post_id)
            stmt = stmt.values({column.key: actual}).execution_options(
                synchronize_session=False
            )
            result = await self._session.execute(stmt)
            corrected[f"{model.__tablename__}.{column.key}"] = result.rowcount
        return corrected
