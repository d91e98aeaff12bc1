"""In-memory attestation reader for deterministic membership tests."""

from __future__ import annotations

from datetime import UTC, datetime

from openbands.attestation.base import (
    AGE_BADGE_VALUE,
    AttestationRecord,
    AttestationType,
)
from openbands.core.errors import AttestationUnavailableError

VERIFIED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeAttestationReader:
    """Serves records from a dict and counts reads.

    ``unavailable`` makes every read raise, like an unreachable RPC.
    """

    def __init__(self, *, unavailable: bool = False) -> None:
        self._records: dict[tuple[str, AttestationType], AttestationRecord] = {}
        self.unavailable = unavailable
        self.calls: list[tuple[str, AttestationType]] = []

    def grant(
        self,
        address: str,
        attestation_type: AttestationType,
        value: str | None = None,
        *,
        is_active: bool = True,
        verified_at: datetime = VERIFIED_AT,
    ) -> AttestationRecord:
        if value is None:
            value = AGE_BADGE_VALUE if attestation_type is AttestationType.AGE else ""
        record = AttestationRecord(attestation_type, value, verified_at, is_active)
        self._records[(address.lower(), attestation_type)] = record
        return record

    def revoke(self, address: str, attestation_type: AttestationType) -> None:
        self._records.pop((address.lower(), attestation_type), None)

    async def get_record(
        self, address: str, attestation_type: AttestationType
    ) -> AttestationRecord | None:
        self.calls.append((address.lower(), attestation_type))
        if self.unavailable:
            raise AttestationUnavailableError("celo", "RPC unreachable")
        record = self._records.get((address.lower(), attestation_type))
        if record is None or not record.is_usable:
            return None
        return record

    async def network_status(self) -> dict[str, str | None]:
        return {"celo": "[celo] RPC unreachable" if self.unavailable else None, "base": None}

    async def health_check(self) -> bool:
        return not self.unavailable
