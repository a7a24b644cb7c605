"""
Character API: FastAPI Application Factory
=============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn character_api.main:app) or the
       `character-api` console script (run()).

Lifecycle:
    Startup:
    1. Initialize logging
    2. Build the store engine and verify it (fatal on failure)
    3. Attach engine + session factory to app.state
    4. Schedule the nickname index task (best-effort, not awaited)

    Shutdown:
    1. Cancel the index task if it is still running
    2. Dispose the engine (close all connections)
"""

import asyncio
import contextlib
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from character_api import __version__
from character_api.config import Settings, settings
from character_api.database import (
    create_session_factory,
    create_store_engine,
    ensure_nickname_index,
    verify_connection,
)
from character_api.exceptions import (
    CharacterApiError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from character_api.middleware.logging import RequestLoggingMiddleware
from character_api.middleware.request_id import RequestIDMiddleware, request_id_var
from character_api.routes import characters, health
from character_api.services.character_service import CharacterService, schema_errors

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout.
    Called once at startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Connect to the store before serving; release it on shutdown.

    A failed connection raises StoreUnavailableError out of startup, which
    makes uvicorn abort and exit non-zero. The index task is fire-and-forget:
    requests may be served before it completes.
    """
    app_settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("Character API %s starting up...", __version__)

    engine = create_store_engine(app_settings)
    try:
        await verify_connection(engine)
    except Exception:
        await engine.dispose()
        raise

    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.index_task = asyncio.create_task(ensure_nickname_index(engine))

    logger.info(
        "App listening at http://%s:%d", app_settings.backend_host, app_settings.backend_port
    )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Character API shutting down...")

    index_task: asyncio.Task = app.state.index_task
    if not index_task.done():
        index_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await index_task

    await engine.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError          → 400 Bad Request
        RequestValidationError   → 400 Bad Request (malformed JSON etc.)
        NotFoundError            → 404 Not Found
        DatabaseError            → 500 Internal Server Error
        CharacterApiError (base) → 500 Internal Server Error
        Exception (fallback)     → 500 Internal Server Error

    5xx responses never carry internal details; those are logged only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        content = {
            "error": "validation_error",
            "message": exc.message,
            "details": exc.context,
            "request_id": rid,
        }
        if exc.errors:
            content["errors"] = exc.errors
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """FastAPI-level input errors (e.g. unparseable JSON) use the same 400 envelope."""
        rid = request_id_var.get("")
        errors = schema_errors(exc)
        logger.warning("[%s] Request validation error: %s", rid, errors)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": "The request could not be parsed.",
                "errors": errors,
                "request_id": rid,
            },
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(CharacterApiError)
    async def handle_app_error(request: Request, exc: CharacterApiError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": "An internal error occurred. Please try again later.",
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    `app_settings` defaults to the environment-loaded settings; tests pass
    their own. The store engine is not created here but in the lifespan.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Character API",
        description="CRUD service over a collection of characters.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.character_service = CharacterService(
        enforce_update_schema=app_settings.enforce_update_schema,
    )

    # Middleware executes in reverse order of addition:
    # RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Page",
            "X-Page-Size",
            "X-Total-Pages",
            "X-Total-Results",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(characters.router)

    return app


app = create_app()


def run() -> None:
    """
    Console entry point.

    lifespan="on" makes a failed store connection abort startup; uvicorn
    then exits with a non-zero status.
    """
    uvicorn.run(
        "character_api.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        lifespan="on",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
