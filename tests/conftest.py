"""Test fixtures — fresh stores and an in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite (aiosqlite) in-memory database. StaticPool
   keeps a single connection alive so every session sees the same tables.
2. The app is built with create_app(session_store=...) and get_db /
   get_token_codec overridden, so nothing needs Postgres or Redis.
3. bcrypt runs at 4 rounds — the minimum — to keep the suite fast.

Settings are read once at import time, so the env vars below must be set
before anything from eventauth is imported.
"""

import os

os.environ.setdefault("EVENTAUTH_PASSWORD_SALT_LENGTH", "4")
os.environ.setdefault("EVENTAUTH_SESSION_BACKEND", "memory")
os.environ.setdefault("EVENTAUTH_REFRESH_COOKIE_SECURE", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eventauth.auth.dependencies import get_token_codec
from eventauth.auth.jwt import TokenCodec
from eventauth.db.engine import get_db
from eventauth.db.models import Base
from eventauth.main import create_app
from eventauth.services.auth_service import AuthService
from eventauth.sessions.store import InMemorySessionStore

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture()
async def db_engine():
    """Per-test in-memory database with the schema created."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def codec():
    """Deterministic keys, separate secrets for access and refresh tokens."""
    return TokenCodec(secret="test-access-secret", refresh_secret="test-refresh-secret")


@pytest.fixture()
def store():
    return InMemorySessionStore()


@pytest.fixture()
def auth_service(codec, store):
    return AuthService(codec, store)


@pytest.fixture()
def app(session_factory, codec, store):
    """App wired to the test database, codec and in-memory session store."""
    application = create_app(session_store=store)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_token_codec] = lambda: codec
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
