"""Session data model shared by the store, the auth client and the manager.

Pattern: Immutable Credential Records
--------------------------------------
A ``User`` and its ``TokenPair`` are received together from the identity
provider and replaced wholesale on every successful login or refresh.  They
are frozen dataclasses so that whatever the UI is holding can never drift
away from what was persisted.

``TokenPair.expires_at`` is an absolute epoch-seconds instant.  The provider
reports a relative ``expiresIn`` duration; it is converted exactly once, at
receipt, via ``TokenPair.from_expires_in``.  Comparing a relative duration
against the wall clock on every check is the classic way to end up with a
token that never expires.

``SessionState`` is a small sum type: exactly one of ``Loading``,
``Unauthenticated``, ``Authenticated`` or ``Error`` is current at any time.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any


@dataclasses.dataclass(frozen=True)
class User:
    """Identity record returned by the provider.

    Attributes:
        id:           Provider subject identifier.
        email:        Primary e-mail address.
        display_name: Human-readable name (``name`` on the wire).
        picture_url:  Optional avatar URL (``picture`` on the wire).
    """

    id: str
    email: str
    display_name: str
    picture_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "name": self.display_name,
        }
        if self.picture_url is not None:
            data["picture"] = self.picture_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            id=str(data["id"]),
            email=data["email"],
            display_name=data["name"],
            picture_url=data.get("picture"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> User:
        return cls.from_dict(json.loads(raw))


@dataclasses.dataclass(frozen=True)
class TokenPair:
    """Access/ID token pair with an absolute expiry.

    Attributes:
        access_token:  Bearer token for API calls and remote logout.
        id_token:      OpenID Connect ID token.
        expires_at:    Absolute expiry in epoch seconds.
        refresh_token: Optional refresh token.  Without one the pair cannot
                       be silently renewed.
    """

    access_token: str
    id_token: str
    expires_at: float
    refresh_token: str | None = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    @classmethod
    def from_expires_in(
        cls,
        *,
        access_token: str,
        id_token: str,
        expires_in: float,
        now: float,
        refresh_token: str | None = None,
    ) -> TokenPair:
        """Build a pair from the provider's relative ``expiresIn`` taken at *now*."""
        return cls(
            access_token=access_token,
            id_token=id_token,
            expires_at=now + expires_in,
            refresh_token=refresh_token,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "accessToken": self.access_token,
            "idToken": self.id_token,
            "expiresAt": self.expires_at,
        }
        if self.refresh_token is not None:
            data["refreshToken"] = self.refresh_token
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenPair:
        return cls(
            access_token=data["accessToken"],
            id_token=data["idToken"],
            expires_at=float(data["expiresAt"]),
            refresh_token=data.get("refreshToken"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> TokenPair:
        return cls.from_dict(json.loads(raw))

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks.
        return (
            f"TokenPair(expires_at={self.expires_at}, "
            f"refreshable={self.can_refresh})"
        )


@dataclasses.dataclass(frozen=True)
class AuthResponse:
    """Result of a successful login exchange."""

    user: User
    tokens: TokenPair


# -- session state ------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class SessionState:
    """Base of the session state sum type."""

    @property
    def is_authenticated(self) -> bool:
        return False


@dataclasses.dataclass(frozen=True)
class Loading(SessionState):
    """Reconciliation or an operation is in flight."""


@dataclasses.dataclass(frozen=True)
class Unauthenticated(SessionState):
    """No usable credentials."""


@dataclasses.dataclass(frozen=True)
class Authenticated(SessionState):
    user: User

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclasses.dataclass(frozen=True)
class Error(SessionState):
    """An operation failed.  Treated as unauthenticated, with a message to show."""

    message: str


@dataclasses.dataclass(frozen=True)
class LoginResult:
    success: bool
    auth_response: AuthResponse | None = None
    error: str | None = None
