"""Event user registry — registration and password checks.

Learn: Users are scoped to an event: "alice" at evt1 and "alice" at evt2
are different accounts with different passwords. Password checks run
the same bcrypt work whether or not the user exists, so login timing
doesn't reveal which usernames are taken.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventauth.auth.password import dummy_password_hash, hash_password, verify_password
from eventauth.db.models import EventUser

logger = structlog.get_logger()


class UserExistsError(Exception):
    """Raised when registering a username already taken in the event."""


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, event_id: str, username: str) -> Optional[EventUser]:
        return await self.db.get(EventUser, (event_id, username))

    async def register(self, event_id: str, username: str, password: str) -> EventUser:
        if await self.get_user(event_id, username):
            raise UserExistsError(f"{username!r} is already registered for {event_id!r}")

        user = EventUser(
            event_id=event_id,
            username=username,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise UserExistsError(
                f"{username!r} is already registered for {event_id!r}"
            ) from e
        await self.db.refresh(user)
        logger.info("users.registered", event_id=event_id, username=username)
        return user

    async def authenticate(self, event_id: str, username: str, password: str) -> bool:
        """True if the user exists and the password matches."""
        user = await self.get_user(event_id, username)
        if user is None:
            verify_password(password, dummy_password_hash())
            return False
        return verify_password(password, user.password_hash)
