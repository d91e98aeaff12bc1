"""Attestation reader interface and data classes.

All registry readers implement the ``AttestationReader`` protocol.
Records are immutable snapshots of on-chain state at read time.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


class AttestationType(enum.StrEnum):
    """Kinds of badge a wallet can hold."""

    NATIONALITY = "nationality"
    AGE = "age"
    COMPANY = "company"


AGE_BADGE_VALUE = "18+"

# Self passports encode Germany as the MRZ filler form.
_MRZ_ALIASES = {"D<<": "DEU"}


def normalize_nationality(code: str) -> str:
    """Normalize an ISO-3166 alpha-3 / MRZ nationality code."""
    code = code.strip().upper()
    return _MRZ_ALIASES.get(code, code)


def normalize_domain(domain: str) -> str:
    """Normalize a company email domain (``@Acme.com`` -> ``acme.com``)."""
    return domain.strip().lower().lstrip("@")


def normalize_value(attestation_type: AttestationType, value: str) -> str:
    """Normalize a badge value for comparison and storage."""
    if attestation_type is AttestationType.NATIONALITY:
        return normalize_nationality(value)
    if attestation_type is AttestationType.COMPANY:
        return normalize_domain(value)
    return value.strip()


@dataclass(frozen=True, slots=True)
class AttestationRecord:
    """A wallet's verified badge as read from the registry."""

    type: AttestationType
    value: str
    verified_at: datetime
    is_active: bool = True

    @property
    def is_usable(self) -> bool:
        """Inactive records and empty values count as "no badge"."""
        return self.is_active and bool(self.value)


@runtime_checkable
class AttestationReader(Protocol):
    """Protocol that all attestation readers must satisfy.

    Readers hold connection config only. Every call reads live state;
    there is no record cache.
    """

    async def get_record(
        self, address: str, attestation_type: AttestationType
    ) -> AttestationRecord | None:
        """Return the wallet's active record of ``attestation_type``.

        Returns None when the wallet has no usable badge (never verified,
        inactive, or empty value).

        Raises AttestationUnavailableError when the registry cannot be read.
        """
        ...

    async def network_status(self) -> dict[str, str | None]:
        """Reachability of each network the reader uses.

        Maps network name to None when reachable, else the failure
        message. Must not raise.
        """
        ...

    async def health_check(self) -> bool:
        """True when every network is reachable. Must not raise."""
        ...
