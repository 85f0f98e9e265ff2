"""Auth API — per-event registration, login, refresh, and identity.

Learn: Routes for the event session lifecycle:
- POST /events/:event_id/users → register a username + password
- POST /events/:event_id/login → password → access token + refresh cookie
- POST /events/:event_id/refresh → refresh cookie → new access token + cookie
- GET /events/:event_id/me → who the bearer token belongs to

Failures raise Unauthorized/TokenError; the handlers registered in
main.py turn them into one uniform 401.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from eventauth.api.cookies import get_refresh_cookie, set_refresh_cookie
from eventauth.auth.dependencies import EventId, get_auth_service, require_event_access
from eventauth.auth.jwt import AccessClaims
from eventauth.db.engine import get_db
from eventauth.services.auth_service import AuthService, Unauthorized
from eventauth.services.user_service import UserExistsError, UserService

router = APIRouter(prefix="/events/{event_id}")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    username: str
    password: str


class UserRead(BaseModel):
    event_id: str
    username: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    event_id: str
    username: str
    expires_at: datetime


# ─── Register ────────────────────────────────────────────


@router.post("/users", response_model=UserRead, status_code=201)
async def register(
    event_id: EventId,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a user for an event."""
    try:
        return await UserService(db).register(event_id, body.username, body.password)
    except UserExistsError:
        raise HTTPException(status_code=409, detail="Username already registered")


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AccessTokenResponse)
async def login(
    event_id: EventId,
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Login with username and password → access token + refresh cookie."""
    if not await UserService(db).authenticate(event_id, body.username, body.password):
        raise Unauthorized("Invalid credentials")

    pair = await auth.login(event_id, body.username)
    set_refresh_cookie(
        response, event_id, pair.refresh_token,
        max_age=int(auth.codec.refresh_ttl.total_seconds()),
    )
    return AccessTokenResponse(access_token=pair.access_token)


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh(
    event_id: EventId,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """Rotate the refresh cookie and return a new access token."""
    pair = await auth.refresh(event_id, get_refresh_cookie(request))
    set_refresh_cookie(
        response, event_id, pair.refresh_token,
        max_age=int(auth.codec.refresh_ttl.total_seconds()),
    )
    return AccessTokenResponse(access_token=pair.access_token)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeResponse)
async def get_me(claims: AccessClaims = Depends(require_event_access)):
    """Identity of the bearer token."""
    return MeResponse(
        event_id=claims.event_id,
        username=claims.username,
        expires_at=claims.expires_at,
    )
