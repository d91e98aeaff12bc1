"""Post, comment and upvote endpoints within a community."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request

from openbands.api.schemas import (
    CommentOut,
    CommentResponse,
    CreateCommentBody,
    CreatePostBody,
    Pagination,
    PostDetailOut,
    PostDetailResponse,
    PostListResponse,
    PostOut,
    PostResponse,
    UpvoteResponse,
    WalletBody,
    page_window,
)
from openbands.core.errors import NotFoundError
from openbands.core.wallet import is_wallet_address
from openbands.membership.actions import (
    create_comment,
    create_post,
    toggle_comment_upvote,
    toggle_post_upvote,
)
from openbands.store.repository import POST_SORTS, CommunityRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/communities/{community_id}/posts", tags=["posts"])


# -- GET /api/communities/{community_id}/posts ---------------------------------


@router.get("", response_model=PostListResponse)
async def list_posts(
    community_id: str,
    request: Request,
    page: int = 1,
    limit: int = 20,
    sort: str = "newest",
) -> PostListResponse:
    """A page of the community's posts."""
    if sort not in POST_SORTS:
        sort = "newest"
    page, limit, offset = page_window(page, limit)

    db_factory = request.app.state.db_factory
    async with db_factory() as session:
        repo = CommunityRepository(session)
        posts, total = await repo.list_posts(
            community_id, sort=sort, limit=limit, offset=offset
        )
        items = [PostOut.from_row(p) for p in posts]

    return PostListResponse(posts=items, pagination=Pagination.build(page, limit, total))


# -- POST /api/communities/{community_id}/posts --------------------------------


@router.post("", response_model=PostResponse)
async def new_post(community_id: str, body: CreatePostBody, request: Request) -> PostResponse:
    """Create a post (members only)."""
    state = request.app.state
    async with state.db_factory() as session:
        post = await create_post(
            session,
            state.rate_limiters.create_post,
            body.wallet_address,
            community_id,
            body.content,
            title=body.title,
            display_name=body.anonymous_id,
        )
        out = PostOut.from_row(post)
    return PostResponse(post=out)


# -- GET /api/communities/{community_id}/posts/{post_id} -----------------------


@router.get("/{post_id}", response_model=PostDetailResponse)
async def get_post(
    community_id: str,
    post_id: str,
    request: Request,
    wallet_address: str | None = Query(default=None, alias="walletAddress"),
) -> PostDetailResponse:
    """A post with its comments. Drifted counters are rebuilt on read."""
    db_factory = request.app.state.db_factory
    async with db_factory() as session:
        repo = CommunityRepository(session)
        post = await repo.get_post(post_id)
        if post is None or post.community_id != community_id:
            msg = "Post not found"
            raise NotFoundError(msg)

        corrected = await repo.reconcile_counters(post_id=post_id)
        if any(corrected.values()):
            logger.warning("Corrected drifted counters on post %s: %s", post_id, corrected)
            await session.commit()
            await session.refresh(post)

        comments = await repo.list_comments(post_id)
        is_member = False
        has_upvoted = False
        if is_wallet_address(wallet_address):
            is_member = await repo.get_membership(community_id, wallet_address) is not None
            has_upvoted = await repo.get_post_upvote(post_id, wallet_address) is not None

        out = PostDetailOut(
            **PostOut.from_row(post).model_dump(),
            comments=[CommentOut.from_row(c) for c in comments],
            has_upvoted=has_upvoted,
        )
    return PostDetailResponse(post=out, is_member=is_member)


# -- POST /api/communities/{community_id}/posts/{post_id}/comments -------------


@router.post("/{post_id}/comments", response_model=CommentResponse)
async def new_comment(
    community_id: str, post_id: str, body: CreateCommentBody, request: Request
) -> CommentResponse:
    """Comment on a post or reply to a comment (members only)."""
    state = request.app.state
    async with state.db_factory() as session:
        comment = await create_comment(
            session,
            state.rate_limiters.create_comment,
            body.wallet_address,
            community_id,
            post_id,
            body.content,
            parent_comment_id=body.parent_comment_id,
            display_name=body.anonymous_id,
            max_depth=state.config.community.max_comment_depth,
        )
        out = CommentOut.from_row(comment)
    return CommentResponse(comment=out)


# -- Upvotes -------------------------------------------------------------------


@router.post("/{post_id}/upvote", response_model=UpvoteResponse)
async def upvote_post(
    community_id: str, post_id: str, body: WalletBody, request: Request
) -> UpvoteResponse:
    """Toggle the caller's upvote on a post."""
    async with request.app.state.db_factory() as session:
        result = await toggle_post_upvote(
            session, body.wallet_address, community_id, post_id
        )
    return UpvoteResponse(upvoted=result.upvoted, upvote_count=result.upvote_count)


@router.post("/{post_id}/comments/{comment_id}/upvote", response_model=UpvoteResponse)
async def upvote_comment(
    community_id: str,
    post_id: str,
    comment_id: str,
    body: WalletBody,
    request: Request,
) -> UpvoteResponse:
    """Toggle the caller's upvote on a comment."""
    async with request.app.state.db_factory() as session:
        result = await toggle_comment_upvote(
            session, body.wallet_address, community_id, post_id, comment_id
        )
    return UpvoteResponse(upvoted=result.upvoted, upvote_count=result.upvote_count)
