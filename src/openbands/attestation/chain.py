"""On-chain attestation reader (web3.py).

Nationality and age badges live in Self-passport registries on Celo; company
email badges are ZK-JWT proofs recorded by a proof manager on Base.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from web3 import AsyncHTTPProvider, AsyncWeb3

from openbands.attestation.abis import (
    AGE_REGISTRY_ABI,
    NATIONALITY_REGISTRY_ABI,
    ZK_JWT_PROOF_MANAGER_ABI,
)
from openbands.attestation.base import (
    AGE_BADGE_VALUE,
    AttestationRecord,
    AttestationType,
    normalize_domain,
    normalize_nationality,
)
from openbands.core.errors import AttestationUnavailableError, ConfigError

if TYPE_CHECKING:
    from openbands.config.schema import AttestationConfig, ChainConfig

logger = logging.getLogger(__name__)

CELO = "celo"
BASE = "base"

# Epoch values above this are milliseconds, not seconds.
_MS_THRESHOLD = 10**11


def _from_epoch(value: int) -> datetime:
    if value > _MS_THRESHOLD:
        value //= 1000
    return datetime.fromtimestamp(value, UTC)


def parse_created_at(raw: str | int) -> datetime:
    """Parse a proof's ``createdAt`` (ISO date or numeric epoch string)."""
    if isinstance(raw, int):
        return _from_epoch(raw)
    text = raw.strip()
    if "T" in text or "-" in text:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return _from_epoch(int(text))


def _make_web3(chain: ChainConfig, timeout: float) -> AsyncWeb3:
    if not chain.rpc_url:
        msg = f"No RPC URL configured for chain {chain.chain_id}"
        raise ConfigError(msg)
    return AsyncWeb3(AsyncHTTPProvider(chain.rpc_url, request_kwargs={"timeout": timeout}))


class ChainAttestationReader:
    """Reads badge records from the registry contracts.

    No caching: each ``get_record`` performs live ``eth_call`` reads.
    The chain id of each network is verified once, on first use.
    """

    def __init__(
        self,
        config: AttestationConfig,
        *,
        celo: AsyncWeb3 | None = None,
        base: AsyncWeb3 | None = None,
    ) -> None:
        self._config = config
        self._w3 = {
            CELO: celo or _make_web3(config.celo, config.request_timeout),
            BASE: base or _make_web3(config.base, config.request_timeout),
        }
        self._expected_chain = {CELO: config.celo.chain_id, BASE: config.base.chain_id}
        self._verified_chains: set[str] = set()

    # ── Plumbing ─────────────────────────────────────────────────

    async def _ensure_network(self, network: str) -> AsyncWeb3:
        w3 = self._w3[network]
        if network in self._verified_chains:
            return w3
        try:
            chain_id = await w3.eth.chain_id
        except Exception as e:
            raise AttestationUnavailableError(network, f"RPC unreachable: {e}") from e
        expected = self._expected_chain[network]
        if chain_id != expected:
            msg = f"Wrong network: RPC reports chain {chain_id}, expected {expected}"
            raise AttestationUnavailableError(network, msg)
        self._verified_chains.add(network)
        return w3

    async def _call(
        self,
        network: str,
        address: str,
        abi: list[dict[str, Any]],
        fn_name: str,
        *args: Any,
    ) -> Any:
        w3 = await self._ensure_network(network)
        contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)
        try:
            return await getattr(contract.functions, fn_name)(*args).call()
        except Exception as e:
            msg = f"{fn_name} failed: {e}"
            raise AttestationUnavailableError(network, msg) from e

    # ── Per-badge reads ──────────────────────────────────────────

    async def _nationality(self, user: str) -> AttestationRecord | None:
        registry = self._config.nationality_registry
        abi = NATIONALITY_REGISTRY_ABI
        if not await self._call(CELO, registry, abi, "isUserVerified", user):
            return None
        nationality, _valid, verified_at, is_active = await self._call(
            CELO, registry, abi, "getNationalityRecord", user
        )
        return AttestationRecord(
            type=AttestationType.NATIONALITY,
            value=normalize_nationality(nationality) if nationality else "",
            verified_at=_from_epoch(int(verified_at)),
            is_active=bool(is_active),
        )

    async def _age(self, user: str) -> AttestationRecord | None:
        registry = self._config.age_registry
        abi = AGE_REGISTRY_ABI
        if not await self._call(CELO, registry, abi, "isUserAgeVerified", user):
            return None
        is_age_verified, verified_at, is_active = await self._call(
            CELO, registry, abi, "getAgeRecord", user
        )
        return AttestationRecord(
            type=AttestationType.AGE,
            value=AGE_BADGE_VALUE if is_age_verified else "",
            verified_at=_from_epoch(int(verified_at)),
            is_active=bool(is_active),
        )

    async def _company(self, user: str) -> AttestationRecord | None:
        manager = self._config.zk_jwt_proof_manager
        if not manager:
            raise AttestationUnavailableError(
                BASE, "ZK-JWT proof manager address not configured"
            )
        proofs = await self._call(
            BASE, manager, ZK_JWT_PROOF_MANAGER_ABI, "getPublicInputsOfAllProofs"
        )
        wanted = user.lower()
        for domain, _nullifier, _email_hash, wallet, created_at in proofs:
            if str(wallet).lower() != wanted:
                continue
            try:
                verified = parse_created_at(created_at)
            except ValueError:
                logger.warning("Unparseable createdAt %r on proof for %s", created_at, user)
                verified = datetime.fromtimestamp(0, UTC)
            return AttestationRecord(
                type=AttestationType.COMPANY,
                value=normalize_domain(domain) if domain else "",
                verified_at=verified,
            )
        return None

    # ── AttestationReader ────────────────────────────────────────

    async def get_record(
        self, address: str, attestation_type: AttestationType
    ) -> AttestationRecord | None:
        user = AsyncWeb3.to_checksum_address(address)
        if attestation_type is AttestationType.NATIONALITY:
            record = await self._nationality(user)
        elif attestation_type is AttestationType.AGE:
            record = await self._age(user)
        else:
            record = await self._company(user)

        if record is None or not record.is_usable:
            logger.debug("No usable %s badge for %s", attestation_type, address)
            return None
        return record

    async def network_status(self) -> dict[str, str | None]:
        status: dict[str, str | None] = {}
        for network in self._w3:
            try:
                await self._ensure_network(network)
            except AttestationUnavailableError as e:
                logger.warning("Attestation network %s unhealthy: %s", network, e)
                status[network] = str(e)
            else:
                status[network] = None
        return status

    async def health_check(self) -> bool:
        status = await self.network_status()
        return all(failure is None for failure in status.values())
