"""Auth service — login, access-token checks, refresh-token rotation.

Learn: Per (event, user) the session moves through:

    NoSession --login--> Active --refresh--> Active (token rotated)
                           |
                           +--stale/replayed token--> rejected

Login always overwrites the stored refresh token, so a second login
silently ends the previous session (one live session per identity).
Access tokens from that older session keep working until they expire:
they are never checked against the store.

Every rejection raises Unauthorized with a specific reason for the logs.
The HTTP layer turns all of them into the same 401 so a client can't
tell "no such user" from "stale token" from "session replaced".
"""

import secrets
from dataclasses import dataclass
from typing import Optional

import structlog

from eventauth.auth.jwt import AccessClaims, TokenCodec, TokenError
from eventauth.sessions.store import SessionStore

logger = structlog.get_logger()


class Unauthorized(Exception):
    """Raised when a request can't be authenticated.

    `reason` is for server-side diagnostics only.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class AuthService:
    """Composes the token codec and the session store."""

    def __init__(self, codec: TokenCodec, store: SessionStore):
        self.codec = codec
        self.store = store

    # ─── Login ────────────────────────────────────────────

    async def login(self, event_id: str, username: str) -> TokenPair:
        """Issue a fresh pair for an already-authenticated user.

        Overwrites any existing session record for the identity.
        """
        pair = self._mint(event_id, username)
        await self.store.set(event_id, username, pair.refresh_token)
        logger.info("auth.login", event_id=event_id, username=username)
        return pair

    # ─── Access tokens ────────────────────────────────────

    def authenticate_access_token(self, authorization: Optional[str]) -> AccessClaims:
        """Verify an `Authorization: Bearer <token>` header value."""
        if not authorization:
            raise Unauthorized("Authentication not found")

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise Unauthorized("Malformed authorization header")

        try:
            return self.codec.verify_access_token(token)
        except TokenError as e:
            raise Unauthorized(f"Access token rejected: {e}") from e

    # ─── Refresh rotation ─────────────────────────────────

    async def refresh(self, event_id: str, presented: Optional[str]) -> TokenPair:
        """Exchange a refresh token for a new pair.

        Raises TokenInvalid / TokenExpired if the token itself doesn't
        verify, and Unauthorized if it's not the one on record.
        """
        if not presented:
            raise Unauthorized("Refresh token not found")

        claims = self.codec.verify_refresh_token(presented)
        username = claims.username

        if claims.event_id != event_id:
            raise Unauthorized("Refresh token identity mismatch")

        stored = await self.store.get(event_id, username)
        if stored is None:
            raise Unauthorized("Refresh token identity mismatch")

        if not secrets.compare_digest(stored.encode(), presented.encode()):
            logger.warning(
                "auth.refresh_token_reused", event_id=event_id, username=username
            )
            raise Unauthorized("Refresh token is invalid")

        pair = self._mint(event_id, username)
        swapped = await self.store.compare_and_set(
            event_id, username, expected=presented, refresh_token=pair.refresh_token
        )
        if not swapped:
            # Another request rotated this token between our read and write.
            logger.warning(
                "auth.refresh_race_lost", event_id=event_id, username=username
            )
            raise Unauthorized("Refresh token is invalid")

        logger.info("auth.refreshed", event_id=event_id, username=username)
        return pair

    def _mint(self, event_id: str, username: str) -> TokenPair:
        return TokenPair(
            access_token=self.codec.create_access_token(event_id, username),
            refresh_token=self.codec.create_refresh_token(event_id, username),
        )
