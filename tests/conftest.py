"""Shared fixtures for tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from museum_auth.auth.models import AuthResponse, TokenPair, User
from museum_auth.storage.credential_store import CredentialStore
from museum_auth.storage.kv_store import InMemoryKeyValueStore

NOW = 1_700_000_000.0


@pytest.fixture
def user() -> User:
    return User(id="1", email="a@b.com", display_name="A")


@pytest.fixture
def valid_tokens() -> TokenPair:
    return TokenPair(
        access_token="t1",
        id_token="i1",
        expires_at=NOW + 3600,
        refresh_token="r1",
    )


@pytest.fixture
def expired_tokens() -> TokenPair:
    return TokenPair(
        access_token="t0",
        id_token="i0",
        expires_at=NOW - 10,
        refresh_token="r0",
    )


@pytest.fixture
def fresh_tokens() -> TokenPair:
    return TokenPair(
        access_token="t2",
        id_token="i2",
        expires_at=NOW + 7200,
        refresh_token="r2",
    )


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> CredentialStore:
    return CredentialStore(kv)


@pytest.fixture
def auth_client(user: User, valid_tokens: TokenPair) -> MagicMock:
    """An ``AuthClient`` double whose calls all succeed."""
    client = MagicMock()
    client.login = AsyncMock(return_value=AuthResponse(user=user, tokens=valid_tokens))
    client.logout = AsyncMock(return_value=True)
    client.refresh_token = AsyncMock()
    return client
