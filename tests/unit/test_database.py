"""Tests for engine setup and schema verification."""

from __future__ import annotations

import pytest
from sqlalchemy import text

from openbands.config.schema import OpenBandsConfig
from openbands.core.errors import StorageError
from openbands.store.database import (
    REQUIRED_TABLES,
    create_db,
    create_engine,
    create_tables,
    verify_schema,
)


def _config(url: str) -> OpenBandsConfig:
    return OpenBandsConfig(database={"url": url})


class TestVerifySchema:
    async def test_empty_database_rejected(self, tmp_path):
        engine = create_engine(_config(f"sqlite+aiosqlite:///{tmp_path}/empty.db"))
        try:
            with pytest.raises(StorageError, match="missing tables") as exc_info:
                await verify_schema(engine)
            assert "communities" in str(exc_info.value)
        finally:
            await engine.dispose()

    async def test_partial_schema_rejected(self, tmp_path):
        engine = create_engine(_config(f"sqlite+aiosqlite:///{tmp_path}/partial.db"))
        try:
            await create_tables(engine)
            async with engine.begin() as conn:
                await conn.execute(text("DROP TABLE comment_upvotes"))
            with pytest.raises(StorageError, match="comment_upvotes"):
                await verify_schema(engine)
        finally:
            await engine.dispose()

    async def test_complete_schema_accepted(self, tmp_path):
        engine = create_engine(_config(f"sqlite+aiosqlite:///{tmp_path}/full.db"))
        try:
            await create_tables(engine)
            await verify_schema(engine)
        finally:
            await engine.dispose()

    def test_required_tables(self):
        assert REQUIRED_TABLES == {
            "communities",
            "community_members",
            "posts",
            "comments",
            "post_upvotes",
            "comment_upvotes",
        }


class TestCreateDb:
    async def test_memory_database_gets_tables(self):
        factory, engine = await create_db(_config("sqlite+aiosqlite://"))
        try:
            await verify_schema(engine)
            async with factory() as session:
                result = await session.execute(text("SELECT count(*) FROM communities"))
                assert result.scalar_one() == 0
        finally:
            await engine.dispose()

    async def test_file_database_must_be_migrated(self, tmp_path):
        with pytest.raises(StorageError):
            await create_db(_config(f"sqlite+aiosqlite:///{tmp_path}/fresh.db"))

    async def test_sqlite_parent_directory_created(self, tmp_path):
        target = tmp_path / "nested" / "dir" / "db.sqlite"
        engine = create_engine(_config(f"sqlite+aiosqlite:///{target}"))
        await engine.dispose()
        assert target.parent.is_dir()
