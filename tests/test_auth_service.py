"""Auth service tests — login, bearer checks, and refresh rotation.

Learn: These run against the in-memory session store and a codec with
fixed keys, so every step of the rotation protocol can be checked
without HTTP in the way.
"""

import asyncio
from datetime import timedelta

import pytest

from eventauth.auth.jwt import TokenCodec, TokenExpired, TokenInvalid
from eventauth.services.auth_service import AuthService, Unauthorized
from eventauth.sessions.store import InMemorySessionStore


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_stores_refresh_token(auth_service, store):
    pair = await auth_service.login("evt1", "alice")
    assert await store.get("evt1", "alice") == pair.refresh_token


@pytest.mark.asyncio
async def test_login_then_authenticate(auth_service):
    pair = await auth_service.login("evt1", "alice")
    claims = auth_service.authenticate_access_token(f"Bearer {pair.access_token}")
    assert (claims.event_id, claims.username) == ("evt1", "alice")


@pytest.mark.asyncio
async def test_second_login_replaces_session(auth_service):
    first = await auth_service.login("evt1", "alice")
    second = await auth_service.login("evt1", "alice")

    with pytest.raises(Unauthorized, match="Refresh token is invalid"):
        await auth_service.refresh("evt1", first.refresh_token)
    assert (await auth_service.refresh("evt1", second.refresh_token)).access_token


@pytest.mark.asyncio
async def test_second_login_leaves_old_access_token_valid(auth_service):
    """Access tokens aren't checked against the store — they live until expiry."""
    first = await auth_service.login("evt1", "alice")
    await auth_service.login("evt1", "alice")
    claims = auth_service.authenticate_access_token(f"Bearer {first.access_token}")
    assert claims.username == "alice"


# ═══════════════════════════════════════════════════════════
# Access token authentication
# ═══════════════════════════════════════════════════════════


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header_is_unauthorized(auth_service, header):
    with pytest.raises(Unauthorized, match="Authentication not found"):
        auth_service.authenticate_access_token(header)


@pytest.mark.parametrize("header", ["Bearer", "Bearer ", "Basic abc", "token-without-scheme"])
def test_malformed_header_is_unauthorized(auth_service, header):
    with pytest.raises(Unauthorized, match="Malformed"):
        auth_service.authenticate_access_token(header)


def test_bearer_scheme_is_case_insensitive(auth_service, codec):
    token = codec.create_access_token("evt1", "alice")
    assert auth_service.authenticate_access_token(f"bearer {token}").username == "alice"


def test_refresh_token_as_bearer_is_unauthorized(auth_service, codec):
    token = codec.create_refresh_token("evt1", "alice")
    with pytest.raises(Unauthorized) as exc_info:
        auth_service.authenticate_access_token(f"Bearer {token}")
    assert isinstance(exc_info.value.__cause__, TokenInvalid)


def test_expired_access_token_is_unauthorized(store):
    codec = TokenCodec("k", access_ttl=timedelta(seconds=-30))
    service = AuthService(codec, store)
    with pytest.raises(Unauthorized) as exc_info:
        service.authenticate_access_token(
            f"Bearer {codec.create_access_token('evt1', 'alice')}"
        )
    assert isinstance(exc_info.value.__cause__, TokenExpired)


# ═══════════════════════════════════════════════════════════
# Refresh rotation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_rotation_scenario(auth_service):
    """login → refresh → stale reuse fails → newest token still works."""
    first = await auth_service.login("evt1", "alice")
    at1, rt1 = first.access_token, first.refresh_token

    second = await auth_service.refresh("evt1", rt1)
    assert second.refresh_token != rt1
    assert second.access_token != at1

    with pytest.raises(Unauthorized, match="Refresh token is invalid"):
        await auth_service.refresh("evt1", rt1)

    third = await auth_service.refresh("evt1", second.refresh_token)
    assert third.refresh_token not in (rt1, second.refresh_token)


@pytest.mark.asyncio
async def test_refresh_returns_working_access_token(auth_service):
    pair = await auth_service.login("evt1", "alice")
    new = await auth_service.refresh("evt1", pair.refresh_token)
    claims = auth_service.authenticate_access_token(f"Bearer {new.access_token}")
    assert (claims.event_id, claims.username) == ("evt1", "alice")


@pytest.mark.asyncio
async def test_refresh_updates_store(auth_service, store):
    pair = await auth_service.login("evt1", "alice")
    new = await auth_service.refresh("evt1", pair.refresh_token)
    assert await store.get("evt1", "alice") == new.refresh_token


@pytest.mark.asyncio
@pytest.mark.parametrize("presented", [None, ""])
async def test_refresh_without_token(auth_service, presented):
    with pytest.raises(Unauthorized, match="Refresh token not found"):
        await auth_service.refresh("evt1", presented)


@pytest.mark.asyncio
async def test_refresh_for_user_who_never_logged_in(auth_service, codec):
    bob_token = codec.create_refresh_token("evt1", "bob")
    with pytest.raises(Unauthorized, match="identity mismatch"):
        await auth_service.refresh("evt1", bob_token)


@pytest.mark.asyncio
async def test_refresh_with_token_from_other_event(auth_service):
    pair = await auth_service.login("evt1", "alice")
    with pytest.raises(Unauthorized, match="identity mismatch"):
        await auth_service.refresh("evt2", pair.refresh_token)


@pytest.mark.asyncio
async def test_refresh_with_tampered_token_is_token_invalid(auth_service, codec):
    pair = await auth_service.login("evt1", "alice")
    header, _, signature = pair.refresh_token.split(".")
    other_payload = codec.create_refresh_token("evt1", "mallory").split(".")[1]

    with pytest.raises(TokenInvalid):
        await auth_service.refresh("evt1", f"{header}.{other_payload}.{signature}")


@pytest.mark.asyncio
async def test_refresh_with_unsigned_token_is_token_invalid(auth_service):
    await auth_service.login("evt1", "alice")
    forged = TokenCodec("not-our-key").create_refresh_token("evt1", "alice")
    with pytest.raises(TokenInvalid):
        await auth_service.refresh("evt1", forged)


@pytest.mark.asyncio
async def test_refresh_with_access_token_is_token_invalid(auth_service):
    pair = await auth_service.login("evt1", "alice")
    with pytest.raises(TokenInvalid):
        await auth_service.refresh("evt1", pair.access_token)


@pytest.mark.asyncio
async def test_refresh_with_expired_token_is_token_expired(store):
    codec = TokenCodec("k", refresh_ttl=timedelta(seconds=-30))
    service = AuthService(codec, store)
    pair = await service.login("evt1", "alice")
    with pytest.raises(TokenExpired):
        await service.refresh("evt1", pair.refresh_token)


@pytest.mark.asyncio
async def test_failed_refresh_does_not_touch_store(auth_service, store):
    pair = await auth_service.login("evt1", "alice")
    with pytest.raises(Unauthorized):
        await auth_service.refresh("evt2", pair.refresh_token)
    assert await store.get("evt1", "alice") == pair.refresh_token


# ═══════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════


class RacingStore(InMemorySessionStore):
    """Simulates another request rotating the token right after our read."""

    async def get(self, event_id, username):
        current = await super().get(event_id, username)
        await self.set(event_id, username, "rotated-by-someone-else")
        return current


@pytest.mark.asyncio
async def test_lost_race_is_unauthorized(codec):
    store = RacingStore()
    service = AuthService(codec, store)
    pair = await service.login("evt1", "alice")

    with pytest.raises(Unauthorized, match="Refresh token is invalid"):
        await service.refresh("evt1", pair.refresh_token)
    assert await InMemorySessionStore.get(store, "evt1", "alice") == "rotated-by-someone-else"


@pytest.mark.asyncio
async def test_concurrent_refreshes_have_one_winner(auth_service, store):
    pair = await auth_service.login("evt1", "alice")

    results = await asyncio.gather(
        *(auth_service.refresh("evt1", pair.refresh_token) for _ in range(5)),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(e, Unauthorized) for e in losers)
    assert await store.get("evt1", "alice") == winners[0].refresh_token
