"""Membership rules and the transactional actions built on them."""

from openbands.membership.actions import (
    VoteResult,
    create_comment,
    create_post,
    join_community,
    require_address,
    toggle_comment_upvote,
    toggle_post_upvote,
)
from openbands.membership.authorization import (
    BadgeRequirement,
    CombinationLogic,
    JoinCheck,
    PostCheck,
    RequirementResult,
    can_join,
    can_post,
    combine,
    community_requirements,
    evaluate_requirement,
)
from openbands.membership.creation import CommunityRequest, create_community

__all__ = [
    "BadgeRequirement",
    "CombinationLogic",
    "CommunityRequest",
    "JoinCheck",
    "PostCheck",
    "RequirementResult",
    "VoteResult",
    "can_join",
    "can_post",
    "combine",
    "community_requirements",
    "create_comment",
    "create_community",
    "create_post",
    "evaluate_requirement",
    "join_community",
    "require_address",
    "toggle_comment_upvote",
    "toggle_post_upvote",
]
