"""Command-line front end for the session module.

Pattern: Prompt Renderer
-------------------------
The CLI is the human-facing boundary.  Each command builds the same object
graph the app uses (key-value file, credential store, HTTP auth client,
session manager), waits for startup reconciliation, runs one operation and
renders the outcome with Rich.  It knows nothing about HTTP or storage
formats; it only talks to ``SessionController`` and ``SessionManager``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.table import Table

from museum_auth.auth import token_clock
from museum_auth.auth.auth_client import HttpAuthClient
from museum_auth.auth.controller import SessionController
from museum_auth.auth.models import Authenticated, Error, SessionState
from museum_auth.auth.session_manager import SessionManager
from museum_auth.config import Settings
from museum_auth.storage.credential_store import CredentialStore
from museum_auth.storage.kv_store import JsonFileKeyValueStore

logger = logging.getLogger(__name__)
console = Console()


def _describe(state: SessionState) -> str:
    if isinstance(state, Authenticated):
        return f"[green]Signed in[/green] as [bold]{state.user.display_name}[/bold] <{state.user.email}>"
    if isinstance(state, Error):
        return f"[red]Error:[/red] {state.message}"
    return "[yellow]Signed out[/yellow]"


async def _status(manager: SessionManager) -> bool:
    table = Table(title="Session")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("State", _describe(manager.current_state))
    user = await manager.get_current_user()
    tokens = await manager.get_current_tokens()
    if user is not None:
        table.add_row("User ID", user.id)
    if tokens is not None:
        remaining = token_clock.seconds_remaining(tokens)
        table.add_row("Token expires in", f"{remaining:.0f}s")
        table.add_row("Refreshable", "yes" if tokens.can_refresh else "no")

    console.print(table)
    return not isinstance(manager.current_state, Error)


async def _login(controller: SessionController, code: str, redirect_uri: str) -> bool:
    result = await controller.login(code, redirect_uri)
    if not result.success:
        console.print(f"[red]Login failed:[/red] {controller.login_error.value}")
        return False
    console.print(_describe(controller.state.value))
    return True


async def _logout(controller: SessionController) -> bool:
    remote_ok = await controller.logout()
    console.print(_describe(controller.state.value))
    if not remote_ok:
        console.print("[dim]Remote sign-out could not be confirmed.[/dim]")
    return True


async def _refresh(manager: SessionManager) -> bool:
    if await manager.refresh_access_token():
        console.print("[green]Tokens refreshed.[/green]")
        return True
    console.print("[red]Tokens could not be refreshed.[/red]")
    return False


async def _run(settings: Settings, command: str, **options: str) -> bool:
    store = CredentialStore(JsonFileKeyValueStore(settings.storage.path))
    async with HttpAuthClient.from_settings(settings.api) as client:
        manager = SessionManager(store, client)
        controller = SessionController(manager)
        try:
            await manager.start()
            actions: dict[str, Callable[[], Awaitable[bool]]] = {
                "status": lambda: _status(manager),
                "login": lambda: _login(
                    controller,
                    options["code"],
                    options.get("redirect_uri") or settings.redirect_uri,
                ),
                "logout": lambda: _logout(controller),
                "refresh": lambda: _refresh(manager),
            }
            return await actions[command]()
        finally:
            await manager.aclose()


def run_cli(settings: Settings, command: str, **options: str) -> int:
    """Run one session command and return the process exit code."""
    ok = asyncio.run(_run(settings, command, **options))
    return 0 if ok else 1
