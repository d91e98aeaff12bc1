"""Liveness and readiness endpoints."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from sqlalchemy import func, select

from openbands.store.models import Community

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from openbands.attestation.base import AttestationReader

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


async def _database(db_factory: async_sessionmaker[AsyncSession]) -> dict[str, Any]:
    """Query the communities table, so a missing schema shows up too."""
    try:
        async with db_factory() as session:
            count = await session.scalar(select(func.count(Community.id)))
    except Exception as e:
        return {"status": "error", "detail": str(e)}
    return {"status": "ok", "communities": count or 0}


async def _registries(reader: AttestationReader | None) -> dict[str, dict[str, str]]:
    if reader is None:
        return {}
    registries: dict[str, dict[str, str]] = {}
    for network, failure in (await reader.network_status()).items():
        if failure is None:
            registries[network] = {"status": "ok"}
        else:
            registries[network] = {"status": "unreachable", "detail": failure}
    return registries


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Liveness: answers without touching the database or the chains."""
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Readiness: database plus one entry per attestation network.

    ``status`` is ``degraded`` when any component is not ``ok``.
    """
    from openbands import __version__

    state = request.app.state
    database = await _database(state.db_factory)
    registries = await _registries(getattr(state, "reader", None))
    ready = database["status"] == "ok" and all(
        entry["status"] == "ok" for entry in registries.values()
    )
    return {
        "status": "ok" if ready else "degraded",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _STARTED, 1),
        "database": database,
        "registries": registries,
    }
