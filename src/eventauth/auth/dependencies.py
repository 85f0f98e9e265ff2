"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. The codec is built
once per process from settings; the session store is created in the app
lifespan and hung on app.state. Tests swap either via
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, Path, Request

from eventauth.auth.jwt import AccessClaims, TokenCodec
from eventauth.config import settings
from eventauth.services.auth_service import AuthService, Unauthorized
from eventauth.sessions.store import SessionStore

# Event IDs end up in the refresh-cookie Path and in String(100) columns.
EventId = Annotated[
    str, Path(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
]


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    """The process-wide token codec."""
    return TokenCodec.from_settings(settings)


def get_session_store(request: Request) -> SessionStore:
    """The session store created during app startup."""
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise RuntimeError("Session store not initialized. Is the lifespan running?")
    return store


def get_auth_service(
    codec: TokenCodec = Depends(get_token_codec),
    store: SessionStore = Depends(get_session_store),
) -> AuthService:
    return AuthService(codec, store)


def get_current_claims(
    authorization: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
) -> AccessClaims:
    """Extract and verify the bearer access token (401 if missing/invalid)."""
    return auth.authenticate_access_token(authorization)


def require_event_access(
    event_id: EventId,
    claims: AccessClaims = Depends(get_current_claims),
) -> AccessClaims:
    """Like get_current_claims, but the token must belong to the path's event."""
    if claims.event_id != event_id:
        raise Unauthorized("Access token issued for a different event")
    return claims
