"""Wallet address helpers and EIP-191 signature checks."""

from __future__ import annotations

import logging
import re

from eth_account import Account
from eth_account.messages import encode_defunct

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_wallet_address(value: object) -> bool:
    """True for a 0x-prefixed, 40 hex digit string (checksum not enforced)."""
    return isinstance(value, str) and _ADDRESS_RE.match(value) is not None


def normalize_address(address: str) -> str:
    """Canonical storage form: lowercase."""
    return address.lower()


def anonymous_id(address: str) -> str:
    """Default display name derived from the wallet address."""
    return f"Anon-{address[2:8]}"


def verify_signature(address: str, message: str, signature: str) -> bool:
    """Check that ``signature`` is ``address``'s personal_sign over ``message``.

    Returns False for malformed signatures instead of raising.
    """
    try:
        recovered = Account.recover_message(
            encode_defunct(text=message), signature=signature
        )
    except Exception as exc:
        logger.debug("Signature recovery failed for %s: %s", address, exc)
        return False
    return normalize_address(recovered) == normalize_address(address)
