"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running
and the database is reachable, and reports which session backend
is active.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from eventauth import __version__
from eventauth.auth.dependencies import get_session_store
from eventauth.db.engine import get_db
from eventauth.sessions.store import SessionStore

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    store: SessionStore = Depends(get_session_store),
):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        # Connection errors can carry hostnames and credentials; logs only.
        logger.error("health.database_unreachable", error=type(e).__name__, reason=str(e))
        checks["database"] = "error"

    status = "healthy" if checks["database"] == "ok" else "degraded"

    return {
        "status": status,
        "session_backend": getattr(store, "backend", type(store).__name__),
        **checks,
    }
