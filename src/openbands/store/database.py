"""Engine/session setup and startup schema verification.

In-memory SQLite gets ``create_all``. Every other database is expected to
be migrated already (alembic or ``openbands init-db``); ``verify_schema``
refuses to start against a database missing any required table.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import event, inspect
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from openbands.core.errors import StorageError
from openbands.store.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from openbands.config.schema import OpenBandsConfig

logger = logging.getLogger(__name__)

REQUIRED_TABLES = frozenset(Base.metadata.tables)


async def verify_schema(engine: AsyncEngine) -> None:
    """Raise StorageError unless every table the app uses exists."""
    async with engine.connect() as conn:
        existing = await conn.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )
    missing = sorted(REQUIRED_TABLES - existing)
    if missing:
        msg = f"Database schema incomplete, missing tables: {', '.join(missing)}"
        raise StorageError(msg)
    logger.debug("Schema verified (%d tables)", len(REQUIRED_TABLES))


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _is_memory(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _expand_url(url: str) -> str:
    if "~" in url:
        url = url.replace("~", str(Path.home()))

    # Ensure parent directory exists for sqlite
    if url.startswith("sqlite"):
        db_path = url.split("///")[-1] if "///" in url else ""
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return url


def create_engine(config: OpenBandsConfig) -> AsyncEngine:
    """Create the async engine for ``config.database``."""
    url = _expand_url(config.database.url)

    engine_kwargs: dict[str, object] = {}
    if url.startswith("sqlite"):
        if _is_memory(url):
            # In-memory SQLite needs StaticPool so all queries share
            # the same connection (and thus the same in-memory DB).
            from sqlalchemy.pool import StaticPool

            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            from sqlalchemy.pool import NullPool

            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = config.database.pool_size
        engine_kwargs["max_overflow"] = config.database.max_overflow
        engine_kwargs["pool_timeout"] = config.database.pool_timeout
        engine_kwargs["pool_recycle"] = config.database.pool_recycle
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_fks(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


async def create_db(
    config: OpenBandsConfig,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create async engine and sessionmaker, and check the schema."""
    engine = create_engine(config)

    if _is_memory(str(engine.url)):
        await create_tables(engine)
    else:
        await verify_schema(engine)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return factory, engine
