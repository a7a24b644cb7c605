"""
Character API: Test Configuration (conftest.py)
==================================================

Shared pytest fixtures.

Fixture Hierarchy:
    ├── mock_db_session: AsyncMock session for service unit tests
    ├── sample_character_body: a valid create body
    ├── test_settings: Settings pointing at a temporary SQLite database
    ├── app: application with tables created and the lifespan entered
    └── test_client: HTTPX AsyncClient bound to `app`
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Before any character_api import: module-level settings read the environment
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "WARNING"

from character_api.config import Settings  # noqa: E402
from character_api.database import Base, create_store_engine  # noqa: E402
from character_api.models.character import Character  # noqa: E402,F401


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = character
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def sample_character_body():
    return {
        "realName": "Peter Parker",
        "nickname": "Spiderman",
        "description": "hero",
    }


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'characters.db'}",
        log_level="WARNING",
    )


async def _create_tables(app_settings: Settings) -> None:
    engine = create_store_engine(app_settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


async def _running_app(app_settings: Settings):
    from character_api.main import create_app

    await _create_tables(app_settings)
    app = create_app(app_settings)
    # ASGITransport does not send lifespan events; enter the lifespan directly
    async with app.router.lifespan_context(app):
        await app.state.index_task
        yield app


@pytest_asyncio.fixture
async def app(test_settings):
    async for running in _running_app(test_settings):
        yield running


@pytest_asyncio.fixture
async def strict_update_app(test_settings):
    """Same as `app`, with schema validation applied to updates."""
    app_settings = test_settings.model_copy(update={"enforce_update_schema": True})
    async for running in _running_app(app_settings):
        yield running


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app.

    Usage:
        async def test_root(test_client):
            response = await test_client.get("/")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
