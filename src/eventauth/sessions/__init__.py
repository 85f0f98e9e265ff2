"""Refresh-token session stores.

Three backends share the SessionStore protocol:
- memory — InMemorySessionStore (tests, single-process dev)
- postgres — SqlSessionStore (event_sessions table)
- redis — RedisSessionStore (Lua compare-and-set)
"""

from eventauth.sessions.store import (
    InMemorySessionStore,
    SessionStore,
    SessionStoreError,
)

__all__ = ["InMemorySessionStore", "SessionStore", "SessionStoreError"]
