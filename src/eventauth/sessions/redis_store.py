"""Redis-backed session store.

Learn: Key naming: eventauth:session:{event_id}:{username}
Each key expires together with the refresh token it holds, so abandoned
sessions clean themselves up.

GET-then-SET from Python would reopen the duplicate-refresh race, so
compare-and-set runs as a Lua script — Redis executes scripts atomically.
"""

from datetime import timedelta
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from eventauth.sessions.store import SessionStoreError

# KEYS[1] = session key; ARGV = expected token, new token, ttl seconds
COMPARE_AND_SET_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current ~= ARGV[1] then
    return 0
end
redis.call('SET', KEYS[1], ARGV[2], 'EX', ARGV[3])
return 1
"""


class RedisSessionStore:
    """Session records as plain string keys with a TTL."""

    backend = "redis"

    def __init__(
        self,
        redis: aioredis.Redis,
        ttl: timedelta,
        prefix: str = "eventauth:session",
    ):
        self._redis = redis
        self._ttl_seconds = max(int(ttl.total_seconds()), 1)
        self._prefix = prefix
        self._compare_and_set = redis.register_script(COMPARE_AND_SET_SCRIPT)

    def _key(self, event_id: str, username: str) -> str:
        return f"{self._prefix}:{event_id}:{username}"

    async def get(self, event_id: str, username: str) -> Optional[str]:
        try:
            value = await self._redis.get(self._key(event_id, username))
        except RedisError as e:
            raise SessionStoreError(f"session lookup failed: {e}") from e
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, event_id: str, username: str, refresh_token: str) -> None:
        try:
            await self._redis.set(
                self._key(event_id, username), refresh_token, ex=self._ttl_seconds
            )
        except RedisError as e:
            raise SessionStoreError(f"session write failed: {e}") from e

    async def compare_and_set(
        self,
        event_id: str,
        username: str,
        expected: str,
        refresh_token: str,
    ) -> bool:
        try:
            swapped = await self._compare_and_set(
                keys=[self._key(event_id, username)],
                args=[expected, refresh_token, self._ttl_seconds],
            )
        except RedisError as e:
            raise SessionStoreError(f"session rotation failed: {e}") from e
        return int(swapped) == 1
