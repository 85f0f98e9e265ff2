"""Session store interface and the in-memory backend.

Learn: The session store maps (event_id, username) to the single refresh
token currently accepted for that identity. It's the only shared mutable
state in the auth flow, so every backend has to offer an atomic
compare-and-set: "replace the token only if it is still the one I read".
Without it, two concurrent refreshes with the same token could both win.
"""

import asyncio
from typing import Optional, Protocol


class SessionStoreError(Exception):
    """Raised when the backing store fails to read or write."""


class SessionStore(Protocol):
    """Durable (event_id, username) → current refresh token mapping."""

    async def get(self, event_id: str, username: str) -> Optional[str]:
        """Return the current refresh token, or None if there is no session."""
        ...

    async def set(self, event_id: str, username: str, refresh_token: str) -> None:
        """Create or overwrite the session record."""
        ...

    async def compare_and_set(
        self,
        event_id: str,
        username: str,
        expected: str,
        refresh_token: str,
    ) -> bool:
        """Replace the token only if the stored one equals `expected`.

        Returns True if the swap happened, False if the record is missing
        or holds a different token.
        """
        ...


class InMemorySessionStore:
    """Process-local store. Good for tests and single-process dev servers."""

    backend = "memory"

    def __init__(self):
        self._records: dict[tuple[str, str], str] = {}
        self._lock = asyncio.Lock()

    async def get(self, event_id: str, username: str) -> Optional[str]:
        return self._records.get((event_id, username))

    async def set(self, event_id: str, username: str, refresh_token: str) -> None:
        async with self._lock:
            self._records[(event_id, username)] = refresh_token

    async def compare_and_set(
        self,
        event_id: str,
        username: str,
        expected: str,
        refresh_token: str,
    ) -> bool:
        async with self._lock:
            key = (event_id, username)
            if self._records.get(key) != expected:
                return False
            self._records[key] = refresh_token
            return True

    def __len__(self) -> int:
        return len(self._records)
