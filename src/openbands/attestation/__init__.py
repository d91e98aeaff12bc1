"""Badge attestation readers."""

from openbands.attestation.base import (
    AGE_BADGE_VALUE,
    AttestationReader,
    AttestationRecord,
    AttestationType,
    normalize_domain,
    normalize_nationality,
    normalize_value,
)
from openbands.attestation.chain import ChainAttestationReader

__all__ = [
    "AGE_BADGE_VALUE",
    "AttestationReader",
    "AttestationRecord",
    "AttestationType",
    "ChainAttestationReader",
    "normalize_domain",
    "normalize_nationality",
    "normalize_value",
]
