"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan builds the session store for the configured backend
(memory, postgres or redis) and tears it down on shutdown.

Error mapping lives here too: every auth failure becomes the same 401,
and store/hashing failures become a bare 500. The detailed reason only
goes to the logs.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eventauth import __version__
from eventauth.api import api_router
from eventauth.auth.dependencies import get_token_codec
from eventauth.auth.jwt import TokenError
from eventauth.auth.password import HashingError
from eventauth.config import settings
from eventauth.services.auth_service import Unauthorized
from eventauth.sessions.store import InMemorySessionStore, SessionStore, SessionStoreError

logger = structlog.get_logger()

UNAUTHORIZED_DETAIL = "Not authenticated"


async def build_session_store() -> SessionStore:
    """Create the session store selected by EVENTAUTH_SESSION_BACKEND."""
    if settings.session_backend == "memory":
        return InMemorySessionStore()

    if settings.session_backend == "redis":
        from eventauth.db.redis_client import get_redis, init_redis
        from eventauth.sessions.redis_store import RedisSessionStore

        await init_redis()
        logger.info("eventauth.redis_connected", url=settings.redis_url)
        return RedisSessionStore(get_redis(), ttl=get_token_codec().refresh_ttl)

    from eventauth.db.engine import async_session_factory
    from eventauth.sessions.sql_store import SqlSessionStore

    return SqlSessionStore(async_session_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "eventauth.starting",
        version=__version__,
        environment=settings.environment,
        session_backend=settings.session_backend,
        port=settings.port,
    )

    # Build the codec now so a bad secret fails at startup, not first request.
    get_token_codec()

    if getattr(app.state, "session_store", None) is None:
        app.state.session_store = await build_session_store()

    yield

    # Shutdown
    logger.info("eventauth.shutdown")

    if settings.session_backend == "redis":
        from eventauth.db.redis_client import close_redis
        await close_redis()

    # Close database engine
    from eventauth.db.engine import engine
    await engine.dispose()


# ─── Exception handlers ─────────────────────────────────


def _unauthorized_response() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": UNAUTHORIZED_DETAIL},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def handle_unauthorized(request: Request, exc: Unauthorized) -> JSONResponse:
    logger.warning("auth.rejected", path=request.url.path, reason=exc.reason)
    return _unauthorized_response()


async def handle_token_error(request: Request, exc: TokenError) -> JSONResponse:
    logger.warning(
        "auth.token_rejected",
        path=request.url.path,
        error=type(exc).__name__,
        reason=str(exc),
    )
    return _unauthorized_response()


async def handle_internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "auth.internal_error",
        path=request.url.path,
        error=type(exc).__name__,
        reason=str(exc),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(session_store: Optional[SessionStore] = None) -> FastAPI:
    """Build and return the FastAPI application.

    Pass `session_store` to skip backend selection (tests, embedding).
    """
    app = FastAPI(
        title="eventauth",
        description="Per-event sessions with rotating refresh tokens",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.session_store = session_store

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler

    from eventauth.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(Unauthorized, handle_unauthorized)
    app.add_exception_handler(TokenError, handle_token_error)
    app.add_exception_handler(HashingError, handle_internal_error)
    app.add_exception_handler(SessionStoreError, handle_internal_error)

    # Mount API routes
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: eventauth.main:app)
app = create_app()
