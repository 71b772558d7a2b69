"""Authoritative session state for the app.

Pattern: Single-Owner State Machine
------------------------------------
``SessionManager`` is the only writer of the session ``StateCell``.  It
reconciles three sources of truth into one value the UI can render:

  1. Persisted credentials (``CredentialStore``).
  2. Token expiry (``token_clock``).
  3. The remote identity provider (``AuthClient``).

State transitions::

    Loading -> Authenticated | Unauthenticated | Error        (initialize)
    *       -> Loading -> Authenticated | Error                (login)
    *       -> Loading -> Unauthenticated                      (logout)

``refresh_access_token`` renews tokens in the background without touching
the state at all.

Concurrency
-----------
Operations may be started concurrently.  Every operation that mutates the
session or the stored credentials runs under one ``asyncio.Lock``, so at most
one transition sequence is in flight and its terminal state is committed
before the next one starts.  ``login`` and ``logout`` publish ``Loading``
before their first suspension point so observers never see a stale value
during the exchange; if they had to queue behind another operation, they
re-publish ``Loading`` once they hold the lock.

Failures
--------
Every ``Exception`` is converted at this boundary into ``Error`` state, a
failed ``LoginResult`` or a ``False`` return.  ``asyncio.CancelledError`` is
not an ``Exception`` and always propagates; before it does, a state left at
``Loading`` by the cancelled operation is rolled back so the session never
stays ``Loading``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable, Coroutine
from typing import Any

from museum_auth.auth import token_clock
from museum_auth.auth.auth_client import AuthClient, AuthClientError
from museum_auth.auth.models import (
    Authenticated,
    Error,
    Loading,
    LoginResult,
    SessionState,
    TokenPair,
    Unauthenticated,
    User,
)
from museum_auth.auth.observable import StateCell
from museum_auth.storage.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the session state and drives every transition.

    Construct it inside a running event loop and reconciliation starts
    immediately; otherwise call ``start()`` (or ``await initialize()``) once a
    loop is available.
    """

    def __init__(
        self,
        store: CredentialStore,
        client: AuthClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock
        self._state: StateCell[SessionState] = StateCell(Loading())
        self._lock = asyncio.Lock()
        self._pending = 0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._init_task: asyncio.Task[None] | None = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; reconciliation deferred to start()")
        else:
            self.start()

    @property
    def state(self) -> StateCell[SessionState]:
        return self._state

    @property
    def current_state(self) -> SessionState:
        return self._state.value

    # -- lifecycle ------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Schedule ``initialize`` once and return its task."""
        if self._init_task is None:
            self._init_task = self.spawn(self.initialize())
        return self._init_task

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run *coro* as a background task cancelled by ``aclose``."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self) -> None:
        """Cancel and await every in-flight background operation."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # -- operations -----------------------------------------------------------

    async def initialize(self) -> None:
        """Derive the session state from persisted credentials."""
        async with self._transition():
            try:
                state = await self._reconcile()
            except Exception as exc:
                logger.exception("Session reconciliation failed")
                state = Error(f"Failed to initialize auth: {exc}")
            self._state.set(state)

    async def login(self, auth_code: str, redirect_uri: str) -> LoginResult:
        """Exchange *auth_code* for a session and persist it.

        A failure leaves the state at ``Error``; the previous session is not
        restored.
        """
        async with self._transition():
            try:
                auth = await self._client.login(auth_code, redirect_uri)
                await self._store.save(auth.user, auth.tokens)
            except Exception as exc:
                logger.warning("Login failed: %s", exc)
                self._state.set(Error(f"Login failed: {exc}"))
                return LoginResult(success=False, error=str(exc))

            logger.info("User %s signed in", auth.user.id)
            self._state.set(Authenticated(auth.user))
            return LoginResult(success=True, auth_response=auth)

    async def logout(self) -> bool:
        """Sign out locally, and remotely when possible.

        The state always ends at ``Unauthenticated``.  The return value only
        reports whether the remote call succeeded (True when there was
        nothing to invalidate).
        """
        async with self._transition():
            try:
                tokens = await self._store.load_tokens()
                remote_ok = True
                if tokens is not None:
                    remote_ok = await self._client.logout(tokens.access_token)
            except Exception as exc:
                logger.warning("Remote logout failed: %s", exc)
                remote_ok = False

            try:
                await self._store.clear()
            except Exception:
                logger.exception("Could not clear stored credentials")
                remote_ok = False

            if not remote_ok:
                logger.warning("Signed out locally; remote session may still be active")
            self._state.set(Unauthenticated())
            return remote_ok

    async def refresh_access_token(self) -> bool:
        """Renew the stored token pair without touching the session state.

        Returns False when there is no user or refresh token, or when the
        refresh fails; persisted credentials are left as they were.
        """
        async with self._lock:
            try:
                tokens = await self._store.load_tokens()
                user = await self._store.load_user()
                if tokens is None or user is None or not tokens.can_refresh:
                    logger.debug("Silent refresh skipped: no refreshable session")
                    return False
                new_tokens = await self._client.refresh_token(tokens.refresh_token)
                await self._store.save(user, new_tokens)
            except Exception as exc:
                logger.warning("Silent token refresh failed: %s", exc)
                return False
            return True

    async def get_current_user(self) -> User | None:
        return await self._store.load_user()

    async def get_current_tokens(self) -> TokenPair | None:
        return await self._store.load_tokens()

    def is_logged_in(self) -> AsyncIterator[bool]:
        return self._store.observe_logged_in()

    # -- private helpers ------------------------------------------------------

    async def _reconcile(self) -> SessionState:
        user = await self._store.load_user()
        tokens = await self._store.load_tokens()
        if user is None or tokens is None:
            return Unauthenticated()

        if token_clock.is_valid(tokens, self._clock()):
            logger.info("Restored session for user %s", user.id)
            return Authenticated(user)

        if not tokens.can_refresh:
            logger.info("Stored session for user %s expired and is not refreshable", user.id)
            await self._store.clear()
            return Unauthenticated()

        try:
            new_tokens = await self._client.refresh_token(tokens.refresh_token)
        except AuthClientError as exc:
            logger.warning("Refresh of expired session for user %s failed: %s", user.id, exc)
            await self._store.clear()
            return Unauthenticated()

        await self._store.save(user, new_tokens)
        logger.info("Refreshed expired session for user %s", user.id)
        return Authenticated(user)

    @contextlib.asynccontextmanager
    async def _transition(self) -> AsyncIterator[None]:
        """Publish ``Loading`` and hold the lock for one transition sequence."""
        previous = self._state.value
        if isinstance(previous, Loading):
            previous = Unauthenticated()
        self._pending += 1
        self._state.set(Loading())
        try:
            async with self._lock:
                # An operation that held the lock meanwhile may have committed
                # a terminal state; that is now what a rollback must restore.
                if not isinstance(self._state.value, Loading):
                    previous = self._state.value
                    self._state.set(Loading())
                yield
        except asyncio.CancelledError:
            if self._pending == 1 and isinstance(self._state.value, Loading):
                self._state.set(previous)
            raise
        finally:
            self._pending -= 1
