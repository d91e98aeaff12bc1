"""Community creation by a badge holder.

The client signs (EIP-191 ``personal_sign``) a compact JSON rendering of
the creation request; the server rebuilds the same string from the
request body and recovers the signer.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from openbands.attestation.base import AttestationType, normalize_nationality
from openbands.core.errors import (
    AuthorizationError,
    ConflictError,
    SignatureError,
    ValidationError,
)
from openbands.core.wallet import verify_signature
from openbands.membership.actions import require_address
from openbands.membership.authorization import (
    BadgeRequirement,
    CombinationLogic,
    check_requirements,
    community_requirements,
    requirements_key,
)
from openbands.store.repository import CommunityRepository

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from openbands.attestation.base import AttestationReader
    from openbands.config.schema import CommunityConfig
    from openbands.ratelimit import RateLimiter
    from openbands.store.models import Community

logger = logging.getLogger(__name__)


@dataclass
class CommunityRequest:
    """Fields of a create-community request, as sent by the client."""

    name: str | None
    description: str | None
    wallet_address: object
    signature: str | None
    timestamp: object
    short_description: str | None = None
    rules: list[str] | str | None = None
    badge_requirements: list[dict[str, Any]] | None = None
    primary_attestation_type: str | None = None
    primary_attestation_values: list[str] | None = None
    attestation_type: str | None = None
    attestation_values: list[str] | str | None = None
    combination_logic: str | None = None


@dataclass(frozen=True, slots=True)
class ResolvedRequirements:
    """Badge requirements after legacy-format conversion."""

    raw: list[dict[str, Any]]
    requirements: list[BadgeRequirement]
    logic: CombinationLogic | None
    primary_type: AttestationType
    primary_values: list[str] | str | None


def resolve_requirements(
    request: CommunityRequest, *, max_nationalities: int = 50
) -> ResolvedRequirements:
    """Validate ``badgeRequirements`` or convert the legacy single-badge fields."""
    if request.badge_requirements:
        raw = list(request.badge_requirements)
        for entry in raw:
            if not isinstance(entry, dict):
                msg = "Badge requirements must be objects"
                raise ValidationError(msg)
        requirements = [BadgeRequirement.from_dict(entry) for entry in raw]
        logic = CombinationLogic.parse(request.combination_logic)
        if len(requirements) > 1 and logic is None:
            msg = "Combination logic (any/all) is required when multiple badges are specified"
            raise ValidationError(msg)
        try:
            primary_type = AttestationType(
                request.primary_attestation_type or requirements[0].type
            )
        except ValueError:
            msg = f"Invalid attestation type: {request.primary_attestation_type}"
            raise ValidationError(msg) from None
        primary_values = request.primary_attestation_values
    else:
        try:
            primary_type = AttestationType(request.attestation_type)
        except ValueError:
            msg = "Invalid attestation type"
            raise ValidationError(msg) from None
        # The signed message carries the legacy values exactly as sent.
        values = request.attestation_values
        parsed = None
        if primary_type is AttestationType.NATIONALITY:
            if not isinstance(values, list) or not values:
                msg = "At least one nationality must be selected"
                raise ValidationError(msg)
            raw = [{"type": "nationality", "values": values}]
        elif primary_type is AttestationType.COMPANY:
            raw = [{"type": "company", "value": values or "verified"}]
            if isinstance(values, list):
                parsed = [{"type": "company", "value": values[0] if values else "verified"}]
        else:
            raw = [{"type": "age", "value": "verified"}]
        primary_values = values
        requirements = [BadgeRequirement.from_dict(entry) for entry in parsed or raw]
        logic = None

    for requirement in requirements:
        if (
            requirement.type is AttestationType.NATIONALITY
            and len(requirement.values) > max_nationalities
        ):
            msg = f"Maximum {max_nationalities} nationalities allowed per badge requirement"
            raise ValidationError(msg)

    return ResolvedRequirements(raw, requirements, logic, primary_type, primary_values)


def signing_message(request: CommunityRequest, resolved: ResolvedRequirements) -> str:
    """The exact string the creator's wallet signed.

    Compact JSON in a fixed key order; absent optional values are omitted.
    """
    payload: dict[str, Any] = {
        "name": request.name,
        "description": request.description,
        "shortDescription": request.short_description or request.description,
        "rules": request.rules or [],
        "badgeRequirements": resolved.raw,
        "primaryAttestationType": resolved.primary_type.value,
    }
    if resolved.primary_values is not None:
        payload["primaryAttestationValues"] = resolved.primary_values
    if request.combination_logic and request.badge_requirements:
        payload["combinationLogic"] = request.combination_logic
    payload["timestamp"] = request.timestamp
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _parse_rules(rules: list[str] | str | None) -> list[str]:
    if isinstance(rules, str):
        return [r.strip() for r in rules.splitlines() if r.strip()]
    return [r.strip() for r in rules or [] if isinstance(r, str) and r.strip()]


def _check_timestamp(timestamp: object, max_age: int, now_ms: float) -> None:
    if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
        msg = "Invalid timestamp"
        raise ValidationError(msg)
    if abs(now_ms - timestamp) > max_age * 1000:
        msg = "Request expired. Please try again."
        raise ValidationError(msg)


def _primary_value(resolved: ResolvedRequirements) -> tuple[str, list[str] | None]:
    """``(attestation_value, attestation_values)`` columns for the community row."""
    if resolved.primary_type is AttestationType.NATIONALITY:
        primary = resolved.primary_values
        source = primary if isinstance(primary, list) and primary else next(
            (
                list(r.values)
                for r in resolved.requirements
                if r.type is AttestationType.NATIONALITY
            ),
            [],
        )
        codes = [normalize_nationality(c) for c in source]
        if codes:
            return codes[0], codes
    if resolved.primary_type is AttestationType.COMPANY:
        for requirement in resolved.requirements:
            if requirement.type is AttestationType.COMPANY:
                return requirement.values[0], None
    return "verified", None


async def _ensure_unique(repo: CommunityRepository, resolved: ResolvedRequirements) -> None:
    key = requirements_key(resolved.requirements)
    for existing in await repo.list_all_communities():
        existing_requirements, _ = community_requirements(existing)
        if requirements_key(existing_requirements) == key:
            msg = (
                "A community with these exact badge requirements already exists: "
                f'"{existing.name}". Please join that community instead.'
            )
            raise ConflictError(msg)


async def create_community(
    session: AsyncSession,
    reader: AttestationReader,
    limiter: RateLimiter,
    request: CommunityRequest,
    config: CommunityConfig,
    *,
    clock: Callable[[], float] = time.time,
) -> Community:
    """Validate, authenticate and persist a new community.

    The creator must currently satisfy the requirements and becomes the
    first member in the same transaction.
    """
    address = require_address(request.wallet_address)
    await limiter.hit(address)

    name = (request.name or "").strip()
    if not 3 <= len(name) <= 100:
        msg = "Invalid name (3-100 characters required)"
        raise ValidationError(msg)
    description = (request.description or "").strip()
    if not 10 <= len(description) <= 500:
        msg = "Invalid description (10-500 characters required)"
        raise ValidationError(msg)

    resolved = resolve_requirements(request, max_nationalities=config.max_nationalities)
    _check_timestamp(request.timestamp, config.signature_max_age_seconds, clock() * 1000)

    message = signing_message(request, resolved)
    if not request.signature or not verify_signature(address, message, request.signature):
        msg = "Invalid signature"
        raise SignatureError(msg)

    logic = resolved.logic or CombinationLogic.OR
    allowed, reason, results = await check_requirements(
        reader, address, resolved.requirements, logic
    )
    if not allowed:
        raise AuthorizationError(reason or "Badge verification failed")

    repo = CommunityRepository(session)
    await _ensure_unique(repo, resolved)

    attestation_value, attestation_values = _primary_value(resolved)
    suffix = "-".join(attestation_values[:3]) if attestation_values else attestation_value
    community_id = f"{resolved.primary_type.value}-{suffix}-{int(clock() * 1000)}"

    satisfied = [r.record for r in results if r.satisfied and r.record is not None]
    creator_record = next(
        (rec for rec in satisfied if rec.type is resolved.primary_type), satisfied[0]
    )

    community = await repo.create_community(
        community_id,
        name,
        description,
        attestation_type=resolved.primary_type.value,
        attestation_value=attestation_value,
        attestation_values=attestation_values,
        badge_requirements=[r.to_dict() for r in resolved.requirements],
        combination_logic=resolved.logic.value if resolved.logic else None,
        short_description=(request.short_description or description[:80]).strip()[:120],
        rules=_parse_rules(request.rules),
        creator_address=address,
        creator_verified_at=creator_record.verified_at,
    )
    await repo.add_membership(
        community_id,
        address,
        attestation_value=creator_record.value,
        attestation_verified_at=creator_record.verified_at,
    )
    await repo.increment_member_count(community_id)
    await session.commit()
    await session.refresh(community)

    logger.info("Community %s created by %s", community_id, address)
    return community
