"""Badge-gated membership decisions.

A community declares one or more ``BadgeRequirement`` entries combined
with ``CombinationLogic.AND`` (every requirement) or ``OR`` (at least
one). ``can_join`` reads the caller's live attestations; ``can_post``
only looks at the membership table (the badge was checked at join time).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from openbands.attestation.base import (
    AGE_BADGE_VALUE,
    AttestationRecord,
    AttestationType,
    normalize_domain,
    normalize_nationality,
    normalize_value,
)
from openbands.core.errors import ValidationError

if TYPE_CHECKING:
    from openbands.attestation.base import AttestationReader
    from openbands.store.models import Community
    from openbands.store.repository import CommunityRepository

logger = logging.getLogger(__name__)


class CombinationLogic(enum.StrEnum):
    """How multiple requirements combine."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value: str | None) -> CombinationLogic | None:
        """Accept ``AND``/``OR`` as well as the ``all``/``any`` aliases."""
        if value is None:
            return None
        aliases = {"AND": cls.AND, "ALL": cls.AND, "OR": cls.OR, "ANY": cls.OR}
        try:
            return aliases[value.strip().upper()]
        except KeyError:
            msg = f"Invalid combination logic: {value!r} (expected all/any)"
            raise ValidationError(msg) from None


@dataclass(frozen=True, slots=True)
class BadgeRequirement:
    """One badge a member must hold.

    ``values`` holds the accepted nationality codes, the single required
    company domain, or nothing for age.
    """

    type: AttestationType
    values: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BadgeRequirement:
        """Parse ``{"type": ..., "value": ...}`` / ``{"type": ..., "values": [...]}``."""
        try:
            attestation_type = AttestationType(data.get("type"))
        except ValueError:
            msg = f"Invalid badge type: {data.get('type')}"
            raise ValidationError(msg) from None

        if attestation_type is AttestationType.NATIONALITY:
            raw = data.get("values")
            if raw is None and data.get("value"):
                raw = [data["value"]]
            if not isinstance(raw, list) or not raw:
                msg = "Nationality badge must include at least one nationality"
                raise ValidationError(msg)
            codes = tuple(dict.fromkeys(normalize_nationality(str(c)) for c in raw))
            return cls(attestation_type, codes)

        if attestation_type is AttestationType.COMPANY:
            domain = normalize_domain(str(data.get("value") or ""))
            if not domain:
                msg = "Company badge must include a domain"
                raise ValidationError(msg)
            return cls(attestation_type, (domain,))

        return cls(attestation_type)

    def to_dict(self) -> dict[str, Any]:
        if self.type is AttestationType.NATIONALITY:
            return {"type": self.type.value, "values": list(self.values)}
        if self.type is AttestationType.COMPANY:
            return {"type": self.type.value, "value": self.values[0]}
        return {"type": self.type.value, "value": "verified"}

    def describe(self) -> str:
        """Human-readable label used in denial messages."""
        if self.type is AttestationType.NATIONALITY:
            return f"Nationality ({', '.join(self.values)})"
        if self.type is AttestationType.COMPANY:
            return f"Email (@{self.values[0]})"
        return f"Age ({AGE_BADGE_VALUE})"

    def matches(self, record: AttestationRecord) -> bool:
        if not record.is_usable or record.type is not self.type:
            return False
        if self.type is AttestationType.AGE:
            return True
        return normalize_value(self.type, record.value) in self.values


@dataclass(frozen=True, slots=True)
class RequirementResult:
    """Outcome of checking one requirement against one wallet."""

    requirement: BadgeRequirement
    satisfied: bool
    reason: str | None = None
    record: AttestationRecord | None = None


@dataclass(slots=True)
class JoinCheck:
    can_join: bool
    reason: str | None = None
    community: Community | None = None
    results: list[RequirementResult] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PostCheck:
    can_post: bool
    reason: str | None = None


def community_requirements(
    community: Community,
) -> tuple[list[BadgeRequirement], CombinationLogic]:
    """Requirements and combination logic stored on a community.

    Communities created before multi-badge support only carry
    ``attestation_type``/``attestation_value(s)``.
    """
    if community.badge_requirements:
        requirements = [BadgeRequirement.from_dict(r) for r in community.badge_requirements]
    else:
        legacy: dict[str, Any] = {"type": community.attestation_type}
        if community.attestation_values:
            legacy["values"] = community.attestation_values
        else:
            legacy["value"] = community.attestation_value
        requirements = [BadgeRequirement.from_dict(legacy)]

    logic = CombinationLogic.parse(community.combination_logic) or CombinationLogic.OR
    return requirements, logic


def requirements_key(requirements: list[BadgeRequirement]) -> tuple[Any, ...]:
    """Order-insensitive identity of a requirement set (duplicate detection)."""
    return tuple(sorted((r.type.value, tuple(sorted(r.values))) for r in requirements))


async def evaluate_requirement(
    reader: AttestationReader, address: str, requirement: BadgeRequirement
) -> RequirementResult:
    """Read the wallet's badge of the required type and compare values.

    AttestationUnavailableError from the reader propagates.
    """
    record = await reader.get_record(address, requirement.type)
    if record is None or not record.is_usable:
        return RequirementResult(
            requirement, False, f"You need to verify your {requirement.type.value} first"
        )
    if requirement.matches(record):
        return RequirementResult(requirement, True, record=record)

    if requirement.type is AttestationType.NATIONALITY:
        reason = f"This community is for {', '.join(requirement.values)} citizens only"
    else:
        reason = (
            f"Your email domain ({normalize_domain(record.value)}) does not match "
            f"the required domain ({requirement.values[0]})"
        )
    return RequirementResult(requirement, False, reason, record)


def combine(results: list[RequirementResult], logic: CombinationLogic) -> bool:
    """AND: every result satisfied. OR: at least one."""
    if not results:
        return False
    if logic is CombinationLogic.AND:
        return all(r.satisfied for r in results)
    return any(r.satisfied for r in results)


def denial_reason(results: list[RequirementResult], logic: CombinationLogic) -> str:
    """Message explaining why ``combine`` rejected ``results``."""
    if len(results) == 1:
        return results[0].reason or "Badge verification failed"
    if logic is CombinationLogic.AND:
        missing = ", ".join(r.requirement.describe() for r in results if not r.satisfied)
        return f"You don't own all required badges. Missing: {missing}."
    required = ", ".join(r.requirement.describe() for r in results)
    return f"You don't own any of the required badges. Required: {required}."


async def check_requirements(
    reader: AttestationReader,
    address: str,
    requirements: list[BadgeRequirement],
    logic: CombinationLogic,
) -> tuple[bool, str | None, list[RequirementResult]]:
    """Evaluate every requirement (one reader call each) and combine."""
    results = [await evaluate_requirement(reader, address, r) for r in requirements]
    if combine(results, logic):
        return True, None, results
    return False, denial_reason(results, logic), results


async def can_join(
    repo: CommunityRepository,
    reader: AttestationReader,
    address: str,
    community_id: str,
) -> JoinCheck:
    """Decide whether ``address`` holds the badges ``community_id`` requires."""
    community = await repo.get_community(community_id)
    if community is None:
        return JoinCheck(False, "Community not found")

    requirements, logic = community_requirements(community)
    allowed, reason, results = await check_requirements(reader, address, requirements, logic)
    if not allowed:
        logger.debug("Join denied for %s in %s: %s", address, community_id, reason)
    return JoinCheck(allowed, reason, community, results)


async def can_post(repo: CommunityRepository, address: str, community_id: str) -> PostCheck:
    """Posting, commenting and voting need an active membership, nothing more."""
    membership = await repo.get_membership(community_id, address)
    if membership is None:
        return PostCheck(False, "You must join this community before posting")
    return PostCheck(True)
