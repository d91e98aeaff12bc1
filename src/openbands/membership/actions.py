"""Transactional member actions: join, post, comment, upvote.

Each function owns one unit of work on the given session: the row it
creates or deletes and the counter that row affects are committed
together, or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from openbands.core.errors import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from openbands.core.wallet import anonymous_id, is_wallet_address, normalize_address
from openbands.membership.authorization import can_join, can_post
from openbands.store.repository import CommunityRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from openbands.attestation.base import AttestationReader
    from openbands.ratelimit import RateLimiter
    from openbands.store.models import Comment, CommunityMember, Post

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 10_000
MAX_TITLE_LENGTH = 255
MAX_COMMENT_LENGTH = 2_000
MAX_ANONYMOUS_ID_LENGTH = 100


@dataclass(frozen=True, slots=True)
class VoteResult:
    """State after an upvote toggle."""

    upvoted: bool
    upvote_count: int


def require_address(value: object) -> str:
    """Validate and normalize a wallet address, or raise ValidationError."""
    if not is_wallet_address(value):
        msg = "Invalid wallet address"
        raise ValidationError(msg)
    return normalize_address(str(value))


def _display_name(address: str, requested: str | None) -> str:
    if requested is None or not requested.strip():
        return anonymous_id(address)
    if len(requested) > MAX_ANONYMOUS_ID_LENGTH:
        msg = f"Anonymous ID too long (max {MAX_ANONYMOUS_ID_LENGTH} characters)"
        raise ValidationError(msg)
    return requested.strip()


async def _require_member(repo: CommunityRepository, address: str, community_id: str) -> None:
    check = await can_post(repo, address, community_id)
    if not check.can_post:
        raise AuthorizationError(check.reason or "Not a member")


# ── Join ─────────────────────────────────────────────────────────


async def join_community(
    session: AsyncSession,
    reader: AttestationReader,
    limiter: RateLimiter,
    wallet_address: object,
    community_id: str,
) -> CommunityMember:
    """Make ``wallet_address`` a member of ``community_id``.

    Joining twice returns the existing membership. Raises ValidationError
    (bad address, checked before any store access), RateLimitExceededError,
    NotFoundError, AuthorizationError (badge missing or mismatched) and
    AttestationUnavailableError.
    """
    address = require_address(wallet_address)
    await limiter.hit(address)

    repo = CommunityRepository(session)
    existing = await repo.get_membership(community_id, address, include_inactive=True)
    if existing is not None and existing.is_active:
        logger.debug("%s already a member of %s", address, community_id)
        return existing

    check = await can_join(repo, reader, address, community_id)
    if check.community is None:
        raise NotFoundError(check.reason or "Community not found")
    if not check.can_join:
        raise AuthorizationError(check.reason or "Badge verification failed")

    # Snapshot the badge that let the wallet in, read fresh.
    satisfied = next(r for r in check.results if r.satisfied)
    record = await reader.get_record(address, satisfied.requirement.type)
    if record is None or not satisfied.requirement.matches(record):
        msg = "Badge verification failed"
        raise AuthorizationError(msg)

    try:
        if existing is None:
            member = await repo.add_membership(
                community_id,
                address,
                attestation_value=record.value,
                attestation_verified_at=record.verified_at,
            )
        else:
            member = await repo.reactivate_membership(
                existing,
                attestation_value=record.value,
                attestation_verified_at=record.verified_at,
            )
        await repo.increment_member_count(community_id)
        await session.commit()
    except IntegrityError:
        # Concurrent join won the unique index.
        await session.rollback()
        member = await repo.get_membership(community_id, address, include_inactive=True)
        if member is None:
            raise
        if not member.is_active:
            await repo.reactivate_membership(
                member,
                attestation_value=record.value,
                attestation_verified_at=record.verified_at,
            )
            await repo.increment_member_count(community_id)
            await session.commit()
        return member

    logger.info("%s joined %s", address, community_id)
    return member


# ── Content ──────────────────────────────────────────────────────


async def create_post(
    session: AsyncSession,
    limiter: RateLimiter,
    wallet_address: object,
    community_id: str,
    content: str | None,
    *,
    title: str | None = None,
    display_name: str | None = None,
) -> Post:
    """Create a post as a member and bump ``post_count``."""
    address = require_address(wallet_address)
    await limiter.hit(address)

    if not content or len(content) > MAX_POST_LENGTH:
        msg = "Invalid content length (1-10,000 characters)"
        raise ValidationError(msg)
    if title and len(title) > MAX_TITLE_LENGTH:
        msg = "Title too long (max 255 characters)"
        raise ValidationError(msg)
    name = _display_name(address, display_name)

    repo = CommunityRepository(session)
    await _require_member(repo, address, community_id)

    post = await repo.create_post(community_id, address, name, content, title=title or None)
    await session.commit()
    logger.info("Post %s created in %s", post.id, community_id)
    return post


async def create_comment(
    session: AsyncSession,
    limiter: RateLimiter,
    wallet_address: object,
    community_id: str,
    post_id: str,
    content: str | None,
    *,
    parent_comment_id: str | None = None,
    display_name: str | None = None,
    max_depth: int = 10,
) -> Comment:
    """Create a (possibly nested) comment as a member and bump ``comment_count``."""
    address = require_address(wallet_address)
    await limiter.hit(address)

    content = (content or "").strip()
    if not content or len(content) > MAX_COMMENT_LENGTH:
        msg = "Invalid content length (1-2,000 characters)"
        raise ValidationError(msg)
    name = _display_name(address, display_name)

    repo = CommunityRepository(session)
    await _require_member(repo, address, community_id)

    post = await repo.get_post(post_id)
    if post is None or post.community_id != community_id:
        msg = "Post not found"
        raise NotFoundError(msg)

    if parent_comment_id:
        parent = await repo.get_comment(parent_comment_id)
        if parent is None or parent.post_id != post.id:
            msg = "Parent comment not found"
            raise NotFoundError(msg)
        depth = await repo.comment_depth(parent_comment_id, limit=max_depth)
        if depth >= max_depth:
            msg = f"Maximum nesting depth ({max_depth} levels) reached"
            raise ValidationError(msg)

    comment = await repo.create_comment(
        post, address, name, content, parent_comment_id=parent_comment_id or None
    )
    await session.commit()
    logger.info("Comment %s created on post %s", comment.id, post.id)
    return comment


# ── Upvotes ──────────────────────────────────────────────────────


async def toggle_post_upvote(
    session: AsyncSession,
    wallet_address: object,
    community_id: str,
    post_id: str,
) -> VoteResult:
    """Upvote ``post_id`` if not yet upvoted by the wallet, otherwise retract."""
    address = require_address(wallet_address)
    repo = CommunityRepository(session)
    await _require_member(repo, address, community_id)

    post = await repo.get_post(post_id)
    if post is None or post.community_id != community_id:
        msg = "Post not found"
        raise NotFoundError(msg)

    existing = await repo.get_post_upvote(post.id, address)
    try:
        if existing is not None:
            result = VoteResult(False, await repo.remove_post_upvote(existing))
        else:
            result = VoteResult(True, await repo.add_post_upvote(post, address))
        await session.commit()
    except IntegrityError:
        # A concurrent request inserted the same vote first.
        await session.rollback()
        refreshed = await repo.get_post(post_id)
        if refreshed is None:
            msg = f"Post disappeared during vote: {post_id}"
            raise StorageError(msg) from None
        return VoteResult(True, refreshed.upvote_count)

    logger.debug("%s %s post %s", address, "upvoted" if result.upvoted else "unvoted", post.id)
    return result


async def toggle_comment_upvote(
    session: AsyncSession,
    wallet_address: object,
    community_id: str,
    post_id: str,
    comment_id: str,
) -> VoteResult:
    """Upvote ``comment_id`` if not yet upvoted by the wallet, otherwise retract."""
    address = require_address(wallet_address)
    repo = CommunityRepository(session)
    await _require_member(repo, address, community_id)

    comment = await repo.get_comment(comment_id)
    if comment is None or comment.post_id != post_id or comment.community_id != community_id:
        msg = "Comment not found"
        raise NotFoundError(msg)

    existing = await repo.get_comment_upvote(comment.id, address)
    try:
        if existing is not None:
            result = VoteResult(False, await repo.remove_comment_upvote(existing))
        else:
            result = VoteResult(True, await repo.add_comment_upvote(comment, address))
        await session.commit()
    except IntegrityError:
        await session.rollback()
        refreshed = await repo.get_comment(comment_id)
        if refreshed is None:
            msg = f"Comment disappeared during vote: {comment_id}"
            raise StorageError(msg) from None
        return VoteResult(True, refreshed.upvote_count)

    logger.debug(
        "%s %s comment %s", address, "upvoted" if result.upvoted else "unvoted", comment.id
    )
    return result
