"""
Character API: Store Bootstrap Tests
=======================================

What:  Connection verification, the startup abort on an unreachable store,
       and best-effort nickname index creation.
"""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from character_api.config import Settings
from character_api.database import (
    NICKNAME_INDEX_NAME,
    Base,
    build_nickname_index,
    create_store_engine,
    ensure_nickname_index,
    verify_connection,
)
from character_api.exceptions import StoreUnavailableError
from character_api.main import create_app
from character_api.models.character import Character

UNREACHABLE_URL = "sqlite+aiosqlite:////nonexistent-directory/for/characters.db"


class TestConnectionBootstrap:

    @pytest.mark.asyncio
    async def test_verify_connection_succeeds(self, test_settings):
        engine = create_store_engine(test_settings)
        try:
            await verify_connection(engine)
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_verify_connection_fails_fast(self):
        engine = create_async_engine(UNREACHABLE_URL)
        try:
            with pytest.raises(StoreUnavailableError):
                await verify_connection(engine)
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_startup_aborts_when_store_unreachable(self):
        app = create_app(Settings(database_url=UNREACHABLE_URL, log_level="WARNING"))
        with pytest.raises(StoreUnavailableError):
            async with app.router.lifespan_context(app):
                pass


class TestNicknameIndex:

    @pytest.mark.asyncio
    async def test_index_created_and_idempotent(self, test_settings):
        engine = create_store_engine(test_settings)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            assert await ensure_nickname_index(engine) is True
            assert await ensure_nickname_index(engine) is True
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_index_failure_is_reported_not_raised(self, test_settings):
        engine = create_store_engine(test_settings)
        try:
            # No tables yet: index creation fails
            assert await ensure_nickname_index(engine) is False
        finally:
            await engine.dispose()

    @pytest.mark.parametrize("dialect_name", ["sqlite", "postgresql"])
    def test_index_stays_out_of_shared_metadata(self, dialect_name):
        before = {index.name for index in Character.__table__.indexes}

        index = build_nickname_index(dialect_name)

        assert index.table is not Character.__table__
        assert {index.name for index in Character.__table__.indexes} == before
        assert NICKNAME_INDEX_NAME not in before

    @pytest.mark.asyncio
    async def test_create_all_after_index_on_fresh_database(self, tmp_path):
        for name in ("first.db", "second.db"):
            engine = create_store_engine(
                Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / name}", log_level="WARNING")
            )
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                assert await ensure_nickname_index(engine) is True
                # Running create_all again must not try to recreate the text index
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            finally:
                await engine.dispose()

    def test_postgresql_uses_gin_text_index(self):
        index = build_nickname_index("postgresql")
        assert index.name == NICKNAME_INDEX_NAME
        assert index.dialect_options["postgresql"]["using"] == "gin"

    @pytest.mark.asyncio
    async def test_app_runs_with_index_task_done(self, app):
        assert app.state.index_task.done()
        assert app.state.index_task.result() is True
