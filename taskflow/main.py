"""FastAPI application entry point.

Application wiring: lifespan, middleware stack, router mounting, exception handlers.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from taskflow.config import Settings, get_settings
from taskflow.database import DatabasePool, sqlite_path
from taskflow.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from taskflow.routers import auth, health, notifications, tasks, users
from taskflow.routers.websocket import router as ws_router
from taskflow.services import auth_service
from taskflow.services.connection_manager import ConnectionManager
from taskflow.services.dispatcher import Dispatcher
from taskflow.services.fanout import FanoutRunner
from taskflow.services.memory_storage import MemoryStorage
from taskflow.services.session_store import MemorySessionStore, SqliteSessionStore
from taskflow.services.storage import SqliteStorage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def open_backends(settings: Settings):
    """Return ``(storage, session_store, db_pool)`` for the configured backend.

    Falls back to the in-memory backend (``db_pool`` is ``None``) when the
    SQLite database cannot be opened.
    """
    if settings.storage_backend == "sqlite":
        db_pool = DatabasePool(sqlite_path(settings.database_url), readers=settings.database_readers)
        try:
            await db_pool.open()
        except Exception:
            logger.warning(
                "Could not open %s, falling back to in-memory storage",
                settings.database_url,
                exc_info=True,
            )
        else:
            write_conn = db_pool.writer
            session_store = SqliteSessionStore(
                write_conn, duration_days=settings.session_duration_days
            )
            return SqliteStorage(write_conn, pool=db_pool), session_store, db_pool

    return (
        MemoryStorage(),
        MemorySessionStore(duration_days=settings.session_duration_days),
        None,
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Open storage and the realtime services on startup; clean up on shutdown."""
    settings = get_settings()

    # -- Storage --
    storage, session_store, db_pool = await open_backends(settings)
    pruned = await session_store.prune_expired()
    if pruned:
        logger.info("Pruned %d expired session(s)", pruned)
    if settings.seed_admin:
        await auth_service.ensure_admin_user(
            storage, settings.admin_password, rounds=settings.bcrypt_rounds
        )
    logger.info("Using %s storage", storage.name)

    application.state.db_pool = db_pool
    application.state.storage = storage
    application.state.session_store = session_store

    # -- Realtime --
    connection_manager = ConnectionManager()
    fanout = FanoutRunner(timeout=settings.fanout_timeout_seconds)
    application.state.connection_manager = connection_manager
    application.state.dispatcher = Dispatcher(connection_manager)
    application.state.fanout = fanout

    yield

    # -- Shutdown --
    await fanout.shutdown()
    await connection_manager.close_all()
    if db_pool is not None:
        await db_pool.close()


# ---------------------------------------------------------------------------
# Custom Middleware
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status_code, duration_ms for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return a standard JSON 500 response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on %s %s: %s",
                request.method,
                request.url.path,
                exc,
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error"},
            )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(title="TaskFlow", lifespan=lifespan)

# -- Middleware stack (add_middleware wraps outermost-first, so add in reverse) --
# Order: CORS -> RequestLogging -> ErrorHandling

settings = get_settings()

# 1. CORS (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Cookie"],
    allow_credentials=True,
)

# 2. Request logging
app.add_middleware(RequestLoggingMiddleware)

# 3. Error handling (innermost)
app.add_middleware(ErrorHandlingMiddleware)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": exc.message})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(status_code=403, content={"error": exc.message})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"error": exc.message})


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Normalize HTTPException responses to use the standard error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )


# -- Routers --
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(tasks.time_entries_router, prefix="/api/time-entries", tags=["tasks"])
# camelCase path kept for existing web clients
app.include_router(tasks.time_entries_router, prefix="/api/timeEntries", include_in_schema=False)
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(ws_router)
