"""
Character API: Store Engine & Session Management
===================================================

What:  Async SQLAlchemy engine construction, connection bootstrap, index
       setup and the per-request session dependency.
How:   The application lifespan builds one engine from settings, verifies it
       with a round-trip, and stores it (plus a session factory) on
       `app.state`. Route handlers receive a session through
       `get_db_session`, which commits on success and rolls back on error.
Who:   Used by main.py (lifecycle) and route handlers (Depends).

Nothing here holds module-level connection state: the engine lives exactly
as long as the application that created it.
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import Index, MetaData, func, literal_column, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from character_api.config import Settings
from character_api.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

NICKNAME_INDEX_NAME = "idx_characters_nickname_text"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Engine Configuration ──────────────────────────────────────────────────
def create_store_engine(app_settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured store.

    Pool arguments are only passed for server databases; SQLite uses its
    own pool classes which reject them.
    """
    kwargs = {
        # Echo SQL only when debugging
        "echo": app_settings.log_level == "DEBUG",
    }
    if not app_settings.is_sqlite:
        kwargs.update(
            pool_size=app_settings.db_pool_size,
            max_overflow=app_settings.db_max_overflow,
            pool_pre_ping=app_settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(app_settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: rows stay readable after the request commits
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Connection Bootstrap ──────────────────────────────────────────────────
async def verify_connection(engine: AsyncEngine) -> None:
    """
    Round-trip to the store before the app starts serving.

    Raises:
        StoreUnavailableError: the store is unreachable. There is no retry;
        the caller aborts startup.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Failed to connect to store %s: %s", engine.url.render_as_string(), e)
        raise StoreUnavailableError(
            context={"url": engine.url.render_as_string(), "error": type(e).__name__},
        ) from e
    logger.info("Connected successfully to store %s", engine.url.render_as_string())


# ── Index Setup ───────────────────────────────────────────────────────────
def build_nickname_index(dialect_name: str) -> Index:
    """
    Text index on the character nickname.

    PostgreSQL gets a GIN full-text index over the JSONB `nickname` value;
    other dialects get an expression index on lower(nickname).

    The index is bound to a copy of the table in its own MetaData, so it
    never becomes part of Base.metadata (create_all and Alembic autogenerate
    stay unaware of it).
    """
    from character_api.models.character import Character

    table = Character.__table__.to_metadata(MetaData())
    nickname = table.c.document["nickname"].as_string()
    if dialect_name == "postgresql":
        return Index(
            NICKNAME_INDEX_NAME,
            func.to_tsvector(literal_column("'simple'"), nickname),
            postgresql_using="gin",
        )
    return Index(NICKNAME_INDEX_NAME, func.lower(nickname))


async def ensure_nickname_index(engine: AsyncEngine) -> bool:
    """
    Best-effort creation of the nickname text index.

    Runs once per process as a background task. Failures are logged and
    reported through the return value; they never propagate into startup
    or request handling.
    """
    try:
        index = build_nickname_index(engine.dialect.name)
        async with engine.begin() as conn:
            await conn.run_sync(lambda sync_conn: index.create(sync_conn, checkfirst=True))
    except Exception as e:
        logger.warning("Could not create index %s on characters: %s", NICKNAME_INDEX_NAME, e)
        return False
    logger.info("Index %s ensured for collection characters", NICKNAME_INDEX_NAME)
    return True


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a store session per request.

    How it works:
        1. Takes the session factory the lifespan attached to app.state
        2. Yields a session to the route handler
        3. On success: commits; on error: rolls back and re-raises
        4. Always: closes the session (returns the connection to the pool)
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
