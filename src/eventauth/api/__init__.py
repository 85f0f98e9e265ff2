"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is per-route here rather than per-router: the login and
refresh endpoints must stay open, and /me checks that the bearer token
belongs to the event in the path.
"""

from fastapi import APIRouter

from eventauth.api.auth import router as auth_router
from eventauth.api.cookies import API_PREFIX
from eventauth.api.health import router as health_router

api_router = APIRouter(prefix=API_PREFIX)

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
