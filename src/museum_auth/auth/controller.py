"""Presentation-facing wrapper around the session manager.

Screens bind to the manager's session state plus three small flags owned
here: whether a login or logout is in progress and the last login error.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from museum_auth.auth.models import LoginResult, SessionState, User
from museum_auth.auth.observable import StateCell
from museum_auth.auth.session_manager import SessionManager

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(self, manager: SessionManager) -> None:
        self._manager = manager
        self.login_in_progress: StateCell[bool] = StateCell(False)
        self.logout_in_progress: StateCell[bool] = StateCell(False)
        self.login_error: StateCell[str | None] = StateCell(None)

    @property
    def state(self) -> StateCell[SessionState]:
        return self._manager.state

    async def login(self, auth_code: str, redirect_uri: str) -> LoginResult:
        self.login_in_progress.set(True)
        self.login_error.set(None)
        try:
            result = await self._manager.login(auth_code, redirect_uri)
        finally:
            self.login_in_progress.set(False)
        if not result.success:
            self.login_error.set(result.error)
        return result

    async def logout(self) -> bool:
        self.logout_in_progress.set(True)
        try:
            return await self._manager.logout()
        finally:
            self.logout_in_progress.set(False)

    def clear_login_error(self) -> None:
        self.login_error.set(None)

    async def get_current_user(self) -> User | None:
        return await self._manager.get_current_user()

    def is_logged_in(self) -> AsyncIterator[bool]:
        return self._manager.is_logged_in()
