"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (60min), sent as a Bearer header on every call
- Refresh token: long-lived (30 days), kept in an HttpOnly cookie and
  exchanged for a new pair. Only the most recently issued refresh token
  per (event, user) is accepted — that check lives in the session store,
  not in the signature.

Every token is scoped to an event: the payload carries event_id and the
username (as "sub"). The "type" claim stops a refresh token from being
used as an access token and vice versa.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar, Optional, Union

import jwt

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenInvalid(TokenError):
    """Bad signature, bad shape, missing claims, or wrong token type."""


class TokenExpired(TokenError):
    """Signature is valid but the token is past its expiry."""


@dataclass(frozen=True)
class TokenClaims:
    """Verified identity claims carried by a token."""

    event_id: str
    username: str
    issued_at: datetime
    expires_at: datetime

    token_type: ClassVar[str] = ""


@dataclass(frozen=True)
class AccessClaims(TokenClaims):
    token_type: ClassVar[str] = ACCESS


@dataclass(frozen=True)
class RefreshClaims(TokenClaims):
    token_type: ClassVar[str] = REFRESH


Claims = Union[AccessClaims, RefreshClaims]


class TokenCodec:
    """Signs and verifies event-scoped access and refresh tokens.

    Learn: The secret is passed in rather than read from settings so
    tests can use deterministic keys. The app builds one codec at
    startup (from_settings) and never changes it.
    """

    def __init__(
        self,
        secret: str,
        refresh_secret: Optional[str] = None,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=60),
        refresh_ttl: timedelta = timedelta(days=30),
    ):
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret")
        self._secret = secret
        self._refresh_secret = refresh_secret or secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings) -> "TokenCodec":
        return cls(
            secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret or None,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    # ─── Creation ─────────────────────────────────────────

    def create_access_token(self, event_id: str, username: str) -> str:
        """Create a JWT access token."""
        return self._encode(ACCESS, event_id, username, self.access_ttl, self._secret)

    def create_refresh_token(self, event_id: str, username: str) -> str:
        """Create a JWT refresh token."""
        return self._encode(
            REFRESH, event_id, username, self.refresh_ttl, self._refresh_secret
        )

    def _encode(
        self,
        token_type: str,
        event_id: str,
        username: str,
        ttl: timedelta,
        secret: str,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "event_id": event_id,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            # iat/exp have one-second resolution; jti keeps tokens minted
            # in the same second distinct.
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, secret, algorithm=self._algorithm)

    # ─── Verification ─────────────────────────────────────

    def verify_access_token(self, token: Optional[str]) -> AccessClaims:
        """Verify an access token. Raises TokenInvalid or TokenExpired."""
        return self._decode(token, AccessClaims, self._secret)

    def verify_refresh_token(self, token: Optional[str]) -> RefreshClaims:
        """Verify a refresh token. Raises TokenInvalid or TokenExpired."""
        return self._decode(token, RefreshClaims, self._refresh_secret)

    def _decode(self, token, claims_cls, secret):
        if not token or not isinstance(token, str):
            raise TokenInvalid("Invalid token: empty")
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpired("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalid(f"Invalid token: {e}")

        if payload.get("type") != claims_cls.token_type:
            raise TokenInvalid(f"Invalid token: not a {claims_cls.token_type} token")
        event_id = payload.get("event_id")
        username = payload.get("sub")
        if not isinstance(event_id, str) or not event_id or not username:
            raise TokenInvalid("Invalid token: missing identity claims")

        return claims_cls(
            event_id=event_id,
            username=username,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
