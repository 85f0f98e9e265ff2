"""Async SQLAlchemy engine and session factory.

Learn: One engine per process, built from EVENTAUTH_DATABASE_URL. The
request handlers get a session via get_db; the SQL session store opens
its own short-lived sessions from the same factory.

Pool sizing (EVENTAUTH_DB_POOL_SIZE / EVENTAUTH_DB_MAX_OVERFLOW) only
applies to server databases. SQLite's pools don't take those options.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from eventauth.config import Settings, settings


def engine_options(config: Settings) -> dict:
    """Keyword arguments for create_async_engine()."""
    options = {"echo": config.debug}
    if make_url(config.database_url).get_backend_name() != "sqlite":
        options["pool_size"] = config.db_pool_size
        options["max_overflow"] = config.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: one session per request."""
    async with async_session_factory() as session:
        yield session
