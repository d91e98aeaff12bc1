"""Request/response models shared by the community routes.

JSON on the wire is camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from openbands.store.models import Comment, Community, Post


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


MAX_PAGE_SIZE = 100


def page_window(page: int, limit: int) -> tuple[int, int, int]:
    """Clamp paging params. Returns (page, limit, offset)."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit, (page - 1) * limit


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class WalletBody(CamelModel):
    """Body of actions that only identify the caller."""

    wallet_address: Any = None


# -- Communities ---------------------------------------------------------------


class CommunityOut(CamelModel):
    id: str
    community_id: str
    name: str
    description: str
    short_description: str | None = None
    attestation_type: str
    attestation_value: str
    attestation_values: list[str] | None = None
    badge_requirements: list[dict[str, Any]] = []
    combination_logic: str | None = None
    rules: list[str] = []
    creator_address: str
    member_count: int
    post_count: int
    last_post_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_row(cls, community: Community) -> CommunityOut:
        return cls(
            id=community.id,
            community_id=community.community_id,
            name=community.name,
            description=community.description,
            short_description=community.short_description,
            attestation_type=community.attestation_type,
            attestation_value=community.attestation_value,
            attestation_values=community.attestation_values,
            badge_requirements=community.badge_requirements or [],
            combination_logic=community.combination_logic,
            rules=community.rules or [],
            creator_address=community.creator_address,
            member_count=community.member_count,
            post_count=community.post_count,
            last_post_at=community.last_post_at,
            created_at=community.created_at,
        )


class CommunityDetailOut(CommunityOut):
    is_member: bool = False


class CommunityListResponse(CamelModel):
    success: bool = True
    communities: list[CommunityOut]
    pagination: Pagination


class CommunityResponse(CamelModel):
    success: bool = True
    community: CommunityDetailOut


class CreateCommunityBody(CamelModel):
    name: str | None = None
    description: str | None = None
    short_description: str | None = None
    rules: list[str] | str | None = None
    badge_requirements: list[dict[str, Any]] | None = None
    primary_attestation_type: str | None = None
    primary_attestation_values: list[str] | None = None
    attestation_type: str | None = None
    attestation_values: list[str] | str | None = None
    combination_logic: str | None = None
    wallet_address: Any = None
    signature: str | None = None
    timestamp: Any = None


class MembershipOut(CamelModel):
    id: str
    community_id: str
    joined_at: datetime


class JoinResponse(CamelModel):
    success: bool = True
    membership: MembershipOut


# -- Posts and comments --------------------------------------------------------


class PostOut(CamelModel):
    id: str
    community_id: str
    title: str | None = None
    content: str
    author_anonymous_id: str
    upvote_count: int
    comment_count: int
    created_at: datetime

    @classmethod
    def from_row(cls, post: Post) -> PostOut:
        return cls(
            id=post.id,
            community_id=post.community_id,
            title=post.title,
            content=post.content,
            author_anonymous_id=post.author_anonymous_id,
            upvote_count=post.upvote_count,
            comment_count=post.comment_count,
            created_at=post.created_at,
        )


class CommentOut(CamelModel):
    id: str
    post_id: str
    parent_comment_id: str | None = None
    author_anonymous_id: str
    content: str
    upvote_count: int
    created_at: datetime

    @classmethod
    def from_row(cls, comment: Comment) -> CommentOut:
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            parent_comment_id=comment.parent_comment_id,
            author_anonymous_id=comment.author_anonymous_id,
            content=comment.content,
            upvote_count=comment.upvote_count,
            created_at=comment.created_at,
        )


class PostDetailOut(PostOut):
    comments: list[CommentOut] = []
    has_upvoted: bool = False


class PostListResponse(CamelModel):
    success: bool = True
    posts: list[PostOut]
    pagination: Pagination


class PostResponse(CamelModel):
    success: bool = True
    post: PostOut


class PostDetailResponse(CamelModel):
    success: bool = True
    post: PostDetailOut
    is_member: bool = False


class CreatePostBody(CamelModel):
    wallet_address: Any = None
    title: str | None = None
    content: str | None = None
    anonymous_id: str | None = None


class CreateCommentBody(CamelModel):
    wallet_address: Any = None
    content: str | None = None
    parent_comment_id: str | None = None
    anonymous_id: str | None = None


class CommentResponse(CamelModel):
    success: bool = True
    comment: CommentOut


class UpvoteResponse(CamelModel):
    success: bool = True
    upvoted: bool
    upvote_count: int
