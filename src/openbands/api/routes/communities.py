"""Community endpoints: list, detail, create, join."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request

from openbands.api.schemas import (
    CommunityDetailOut,
    CommunityListResponse,
    CommunityOut,
    CommunityResponse,
    CreateCommunityBody,
    JoinResponse,
    MembershipOut,
    Pagination,
    WalletBody,
    page_window,
)
from openbands.attestation.base import AttestationType
from openbands.core.errors import NotFoundError, ValidationError
from openbands.core.wallet import is_wallet_address
from openbands.membership.actions import join_community, require_address
from openbands.membership.creation import CommunityRequest, create_community
from openbands.store.repository import COMMUNITY_SORTS, CommunityRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/communities", tags=["communities"])


# -- GET /api/communities ------------------------------------------------------


@router.get("", response_model=CommunityListResponse)
async def list_communities(
    request: Request,
    attestation_type: str | None = Query(default=None, alias="attestationType"),
    page: int = 1,
    limit: int = 20,
    sort: str = "newest",
) -> CommunityListResponse:
    """List active communities, optionally filtered by badge type."""
    valid_types = {t.value for t in AttestationType}
    if attestation_type is not None and attestation_type not in valid_types:
        msg = f"Invalid attestation type: {attestation_type}"
        raise ValidationError(msg)
    if sort not in COMMUNITY_SORTS:
        sort = "newest"
    page, limit, offset = page_window(page, limit)

    db_factory = request.app.state.db_factory
    async with db_factory() as session:
        repo = CommunityRepository(session)
        communities, total = await repo.list_communities(
            attestation_type=attestation_type, sort=sort, limit=limit, offset=offset
        )
        items = [CommunityOut.from_row(c) for c in communities]

    return CommunityListResponse(
        communities=items, pagination=Pagination.build(page, limit, total)
    )


# -- POST /api/communities -----------------------------------------------------


@router.post("", response_model=CommunityResponse)
async def create(body: CreateCommunityBody, request: Request) -> CommunityResponse:
    """Create a community. The signed-in creator becomes its first member."""
    community_request = CommunityRequest(
        name=body.name,
        description=body.description,
        wallet_address=body.wallet_address,
        signature=body.signature,
        timestamp=body.timestamp,
        short_description=body.short_description,
        rules=body.rules,
        badge_requirements=body.badge_requirements,
        primary_attestation_type=body.primary_attestation_type,
        primary_attestation_values=body.primary_attestation_values,
        attestation_type=body.attestation_type,
        attestation_values=body.attestation_values,
        combination_logic=body.combination_logic,
    )
    state = request.app.state
    async with state.db_factory() as session:
        community = await create_community(
            session,
            state.reader,
            state.rate_limiters.create_community,
            community_request,
            state.config.community,
        )
        out = CommunityDetailOut(
            **CommunityOut.from_row(community).model_dump(), is_member=True
        )
    return CommunityResponse(community=out)


# -- GET /api/communities/{community_id} ---------------------------------------


@router.get("/{community_id}", response_model=CommunityResponse)
async def get_community(
    community_id: str,
    request: Request,
    wallet_address: str | None = Query(default=None, alias="walletAddress"),
) -> CommunityResponse:
    """Community details, with membership status for ``walletAddress``."""
    db_factory = request.app.state.db_factory
    async with db_factory() as session:
        repo = CommunityRepository(session)
        community = await repo.get_community(community_id)
        if community is None:
            msg = "Community not found"
            raise NotFoundError(msg)
        is_member = False
        if is_wallet_address(wallet_address):
            is_member = await repo.get_membership(community_id, wallet_address) is not None
        out = CommunityDetailOut(
            **CommunityOut.from_row(community).model_dump(), is_member=is_member
        )
    return CommunityResponse(community=out)


# -- POST /api/communities/{community_id}/join ---------------------------------


@router.post("/{community_id}/join", response_model=JoinResponse)
async def join(community_id: str, body: WalletBody, request: Request) -> JoinResponse:
    """Join a community after verifying the caller's badges on-chain."""
    address = require_address(body.wallet_address)

    state = request.app.state
    async with state.db_factory() as session:
        member = await join_community(
            session, state.reader, state.rate_limiters.join, address, community_id
        )
        membership = MembershipOut(
            id=member.id, community_id=member.community_id, joined_at=member.joined_at
        )
    return JoinResponse(membership=membership)
