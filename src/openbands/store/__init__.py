"""Community/post/comment persistence."""

from openbands.store.database import create_db, create_tables, verify_schema
from openbands.store.models import (
    Base,
    Comment,
    CommentUpvote,
    Community,
    CommunityMember,
    Post,
    PostUpvote,
)
from openbands.store.repository import CommunityRepository

__all__ = [
    "Base",
    "Comment",
    "CommentUpvote",
    "Community",
    "CommunityMember",
    "CommunityRepository",
    "Post",
    "PostUpvote",
    "create_db",
    "create_tables",
    "verify_schema",
]
