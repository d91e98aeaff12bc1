"""FastAPI application factory for the openbands REST API."""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from openbands import __version__
from openbands.core.errors import (
    AttestationUnavailableError,
    OpenBandsError,
    RateLimitExceededError,
    RequestError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from openbands.attestation.base import AttestationReader
    from openbands.config.schema import OpenBandsConfig
    from openbands.ratelimit import RateLimiters

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler: verify the DB and build chain readers on startup."""
    from openbands.attestation.chain import ChainAttestationReader
    from openbands.ratelimit import build_rate_limiters
    from openbands.store.database import create_db

    config: OpenBandsConfig = app.state.config
    factory, engine = await create_db(config)
    app.state.db_factory = factory
    app.state.engine = engine

    if getattr(app.state, "reader", None) is None:
        app.state.reader = ChainAttestationReader(config.attestation)
    if getattr(app.state, "rate_limiters", None) is None:
        app.state.rate_limiters = build_rate_limiters(config.rate_limit)

    logger.info("openbands API ready (database %s)", engine.url.render_as_string())

    yield

    await engine.dispose()


# ── Error mapping ────────────────────────────────────────────────


async def _request_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestError)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.reason})


async def _rate_limited(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RateLimitExceededError)
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
        headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
    )


async def _invalid_body(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        detail = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail})


async def _attestation_unavailable(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Attestation read failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Attestation registry unavailable. Please try again later."},
    )


async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(
    config: OpenBandsConfig | None = None,
    *,
    reader: AttestationReader | None = None,
    rate_limiters: RateLimiters | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``reader`` and ``rate_limiters`` replace the chain reader and the
    configured limiter backend (used by tests and embedding apps).
    """
    from openbands.config.loader import load_config

    if config is None:
        config = load_config()

    app = FastAPI(
        title="openbands",
        description="Badge-gated anonymous communities API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.reader = reader
    app.state.rate_limiters = rate_limiters

    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestError, _request_error)
    app.add_exception_handler(RateLimitExceededError, _rate_limited)
    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.add_exception_handler(AttestationUnavailableError, _attestation_unavailable)
    app.add_exception_handler(OpenBandsError, _internal_error)
    app.add_exception_handler(Exception, _internal_error)

    from openbands.api.health import router as health_router
    from openbands.api.routes.communities import router as communities_router
    from openbands.api.routes.posts import router as posts_router

    app.include_router(communities_router)
    app.include_router(posts_router)
    app.include_router(health_router)

    return app
