"""Tests for cashback/auth/sessions.py - Refresh-token sessions."""

import uuid

import pytest

from cashback.auth.exceptions import InvalidTokenError
from cashback.auth.sessions import SessionRegistry
from cashback.ephemeral.store import session_key


@pytest.fixture
def registry(store, token_issuer):
    return SessionRegistry(store, token_issuer)


@pytest.mark.asyncio
async def test_start_records_refresh_jti(registry, store):
    user_id = uuid.uuid4()

    pair = await registry.start(user_id, "a@b.com", "user")

    assert await store.get(session_key(user_id)) == pair.refresh_jti


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(registry):
    user_id = uuid.uuid4()
    pair = await registry.start(user_id, "a@b.com", "user")

    assert await registry.rotate(pair.refresh_token) == user_id
    with pytest.raises(InvalidTokenError):
        await registry.rotate(pair.refresh_token)


@pytest.mark.asyncio
async def test_new_session_invalidates_previous_refresh_token(registry):
    user_id = uuid.uuid4()
    first = await registry.start(user_id, "a@b.com", "user")
    second = await registry.start(user_id, "a@b.com", "user")

    with pytest.raises(InvalidTokenError):
        await registry.rotate(first.refresh_token)
    assert await registry.rotate(second.refresh_token) == user_id


@pytest.mark.asyncio
async def test_end_revokes_session(registry):
    user_id = uuid.uuid4()
    pair = await registry.start(user_id, "a@b.com", "user")

    await registry.end(user_id)

    with pytest.raises(InvalidTokenError):
        await registry.rotate(pair.refresh_token)


@pytest.mark.asyncio
async def test_session_expires_with_refresh_ttl(registry, store, clock, token_issuer):
    user_id = uuid.uuid4()
    await registry.start(user_id, "a@b.com", "user")

    clock.advance(token_issuer.refresh_expires_in.total_seconds())

    assert await store.get(session_key(user_id)) is None
