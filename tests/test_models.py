"""Tests for the session data model."""

from __future__ import annotations

import dataclasses
import json

import pytest

from museum_auth.auth.models import (
    Authenticated,
    Error,
    Loading,
    TokenPair,
    Unauthenticated,
    User,
)


class TestUser:
    def test_wire_names_in_json(self) -> None:
        user = User(id="1", email="a@b.com", display_name="A", picture_url="https://x/p.png")
        data = json.loads(user.to_json())
        assert data == {"id": "1", "email": "a@b.com", "name": "A", "picture": "https://x/p.png"}

    def test_picture_optional(self) -> None:
        user = User.from_json('{"id": "7", "email": "e@x.org", "name": "E"}')
        assert user.picture_url is None
        assert "picture" not in json.loads(user.to_json())

    def test_numeric_id_is_stringified(self) -> None:
        user = User.from_dict({"id": 42, "email": "e@x.org", "name": "E"})
        assert user.id == "42"

    def test_missing_field_raises(self) -> None:
        with pytest.raises(KeyError):
            User.from_json('{"id": "1", "email": "a@b.com"}')

    def test_immutable(self, user: User) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            user.email = "other@b.com"  # type: ignore[misc]


class TestTokenPair:
    def test_expires_in_converted_to_absolute(self) -> None:
        tokens = TokenPair.from_expires_in(
            access_token="a", id_token="i", expires_in=3600, now=1000.0
        )
        assert tokens.expires_at == 4600.0

    def test_can_refresh(self) -> None:
        assert TokenPair("a", "i", 1.0, refresh_token="r").can_refresh
        assert not TokenPair("a", "i", 1.0).can_refresh
        assert not TokenPair("a", "i", 1.0, refresh_token="").can_refresh

    def test_persisted_form_uses_absolute_expiry(self, valid_tokens: TokenPair) -> None:
        data = json.loads(valid_tokens.to_json())
        assert data["expiresAt"] == valid_tokens.expires_at
        assert "expiresIn" not in data

    def test_repr_hides_secrets(self, valid_tokens: TokenPair) -> None:
        text = repr(valid_tokens)
        assert valid_tokens.access_token not in text
        assert valid_tokens.refresh_token not in text


class TestSessionState:
    def test_only_authenticated_is_authenticated(self, user: User) -> None:
        assert Authenticated(user).is_authenticated
        assert not Loading().is_authenticated
        assert not Unauthenticated().is_authenticated
        assert not Error("boom").is_authenticated

    def test_variants_are_distinct(self) -> None:
        assert Loading() == Loading()
        assert Loading() != Unauthenticated()

    def test_authenticated_equality_by_user(self, user: User) -> None:
        assert Authenticated(user) == Authenticated(User("1", "a@b.com", "A"))
