"""HTTP client for the remote identity endpoints.

Pattern: Thin Remote Gateway
-----------------------------
The identity backend fronts Auth0 with three POST endpoints:

  - ``/auth0/login``   exchanges an authorization code for ``{user, tokens}``.
  - ``/auth0/logout``  invalidates the access token (bearer auth).
  - ``/auth0/refresh`` exchanges a refresh token (bearer auth) for new tokens.

This module only speaks HTTP.  It performs no retries and keeps no state:
deciding what a failure *means* for the session is the session manager's job.
Transport problems surface as ``NetworkError``; anything the provider sends
back that is not a well-formed 2xx answer surfaces as ``ProviderError``.
``logout`` is the exception: it reports failure as ``False`` because local
sign-out must proceed regardless.

Response bodies are validated with pydantic before they are turned into the
domain dataclasses, and ``expiresIn`` is converted to an absolute instant the
moment the response is received.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from museum_auth.auth.models import AuthResponse, TokenPair, User
from museum_auth.config import ApiSettings

logger = logging.getLogger(__name__)


class AuthClientError(Exception):
    """Base class for failures talking to the identity provider."""


class NetworkError(AuthClientError):
    """The request did not complete (connection failure, timeout, ...)."""


class ProviderError(AuthClientError):
    """The provider answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthClient(Protocol):
    async def login(self, auth_code: str, redirect_uri: str) -> AuthResponse:
        ...

    async def logout(self, access_token: str) -> bool:
        ...

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        ...


# -- wire schema --------------------------------------------------------------


class _WireUser(BaseModel):
    id: str | int
    email: str
    name: str
    picture: str | None = None

    def to_user(self) -> User:
        return User(
            id=str(self.id),
            email=self.email,
            display_name=self.name,
            picture_url=self.picture,
        )


class _WireTokens(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    id_token: str = Field(alias="idToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")
    expires_in: float = Field(alias="expiresIn")

    def to_tokens(self, now: float) -> TokenPair:
        return TokenPair.from_expires_in(
            access_token=self.access_token,
            id_token=self.id_token,
            refresh_token=self.refresh_token,
            expires_in=self.expires_in,
            now=now,
        )


class _WireAuthResponse(BaseModel):
    user: _WireUser
    tokens: _WireTokens


# -- client ---------------------------------------------------------------------


class HttpAuthClient:
    """``AuthClient`` backed by ``httpx.AsyncClient``.

    If *http* is supplied the caller owns it; otherwise the client creates
    one and closes it in ``aclose``.
    """

    def __init__(
        self,
        base_url: str,
        http: httpx.AsyncClient | None = None,
        *,
        login_path: str = "/auth0/login",
        logout_path: str = "/auth0/logout",
        refresh_path: str = "/auth0/refresh",
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._login_path = login_path
        self._logout_path = logout_path
        self._refresh_path = refresh_path
        self._owns_http = http is None
        self._http = http if http is not None else httpx.AsyncClient(timeout=timeout)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: ApiSettings, http: httpx.AsyncClient | None = None) -> HttpAuthClient:
        return cls(
            settings.base_url,
            http,
            login_path=settings.login_path,
            logout_path=settings.logout_path,
            refresh_path=settings.refresh_path,
            timeout=settings.timeout_seconds,
        )

    async def login(self, auth_code: str, redirect_uri: str) -> AuthResponse:
        """Exchange an authorization code for a user and token pair.

        Raises ``NetworkError`` or ``ProviderError``.
        """
        response = await self._post(
            "login",
            self._login_path,
            params={"code": auth_code, "redirect_uri": redirect_uri},
        )
        payload = self._parse("login", response, _WireAuthResponse)
        now = self._clock()
        auth = AuthResponse(user=payload.user.to_user(), tokens=payload.tokens.to_tokens(now))
        logger.info("Login exchange succeeded for user %s", auth.user.id)
        return auth

    async def logout(self, access_token: str) -> bool:
        """Invalidate *access_token* remotely.  Returns False on any failure."""
        try:
            await self._post("logout", self._logout_path, bearer=access_token)
        except Exception as exc:
            logger.warning("Remote logout failed: %s", exc)
            return False
        return True

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """Exchange *refresh_token* for a new token pair.

        Raises ``NetworkError`` or ``ProviderError``.
        """
        response = await self._post("refresh", self._refresh_path, bearer=refresh_token)
        payload = self._parse("refresh", response, _WireTokens)
        return payload.to_tokens(self._clock())

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> HttpAuthClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- private helpers -----------------------------------------------------

    async def _post(
        self,
        operation: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        bearer: str | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {bearer}"} if bearer is not None else None
        try:
            response = await self._http.post(
                f"{self._base_url}{path}",
                params=params,
                headers=headers,
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"{operation} request failed: {exc}") from exc
        except httpx.RequestError as exc:
            # Undecodable bodies, redirect loops: the provider's answer is unusable.
            raise ProviderError(f"{operation} returned an unusable response: {exc}") from exc

        if not response.is_success:
            raise ProviderError(
                f"{operation} rejected by provider: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _parse(operation: str, response: httpx.Response, schema: type[BaseModel]) -> Any:
        try:
            return schema.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderError(
                f"{operation} returned a malformed body: {exc}",
                status_code=response.status_code,
            ) from exc
