"""Refresh-token cookie handling.

Learn: The refresh token never appears in a response body. It travels in
an HttpOnly cookie scoped to the event's URL prefix, so the browser
only sends it back to that event's /refresh endpoint and page scripts
can't read it.
"""

from typing import Optional
from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import Response

from eventauth.config import settings

API_PREFIX = "/api/v1"


def refresh_cookie_path(event_id: str) -> str:
    return f"{API_PREFIX}/events/{quote(event_id, safe='')}"


def set_refresh_cookie(
    response: Response, event_id: str, refresh_token: str, max_age: int
) -> None:
    """Install the refresh token on the client."""
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=max_age,
        path=refresh_cookie_path(event_id),
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="strict",
    )


def get_refresh_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(settings.refresh_cookie_name)
