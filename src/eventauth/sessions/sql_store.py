"""PostgreSQL-backed session store (any SQLAlchemy async dialect works).

Learn: Rotation is one statement:

    UPDATE event_sessions SET refresh_token = :new
    WHERE event_id = :e AND username = :u AND refresh_token = :expected

The database serialises concurrent UPDATEs on the same row, so at most
one of two racing refreshes sees rowcount == 1.
"""

from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventauth.db.models import EventSession, utcnow
from eventauth.sessions.store import SessionStoreError

logger = structlog.get_logger()


class SqlSessionStore:
    """Session records in the event_sessions table."""

    backend = "postgres"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, event_id: str, username: str) -> Optional[str]:
        q = select(EventSession.refresh_token).where(
            EventSession.event_id == event_id,
            EventSession.username == username,
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(q)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"session lookup failed: {e}") from e

    async def set(self, event_id: str, username: str, refresh_token: str) -> None:
        try:
            async with self._session_factory() as db:
                if await self._update(db, event_id, username, refresh_token):
                    await db.commit()
                    return
                db.add(EventSession(
                    event_id=event_id,
                    username=username,
                    refresh_token=refresh_token,
                ))
                try:
                    await db.commit()
                except IntegrityError:
                    # A concurrent login inserted the row first — overwrite it.
                    await db.rollback()
                    await self._update(db, event_id, username, refresh_token)
                    await db.commit()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"session write failed: {e}") from e

    async def compare_and_set(
        self,
        event_id: str,
        username: str,
        expected: str,
        refresh_token: str,
    ) -> bool:
        try:
            async with self._session_factory() as db:
                swapped = await self._update(
                    db, event_id, username, refresh_token, expected=expected
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"session rotation failed: {e}") from e

        if not swapped:
            logger.info("sessions.cas_miss", event_id=event_id, username=username)
        return swapped

    async def _update(
        self,
        db: AsyncSession,
        event_id: str,
        username: str,
        refresh_token: str,
        expected: Optional[str] = None,
    ) -> bool:
        stmt = update(EventSession).where(
            EventSession.event_id == event_id,
            EventSession.username == username,
        )
        if expected is not None:
            stmt = stmt.where(EventSession.refresh_token == expected)
        stmt = (
            stmt.values(refresh_token=refresh_token, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1
