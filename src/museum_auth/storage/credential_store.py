"""Persistence of the current user and its token pair.

The user and tokens live under two keys (``auth_user`` and ``auth_tokens``)
of a ``KeyValueStore`` and are always written or removed in a single atomic
edit, so a reader never sees one without the other.

Reads never raise.  Missing, corrupt and unreadable entries all come back as
``None``: callers treat every one of them as "no usable session".
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import TypeVar

from museum_auth.auth.models import TokenPair, User
from museum_auth.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

USER_KEY = "auth_user"
TOKENS_KEY = "auth_tokens"

_T = TypeVar("_T")


class CredentialStore:
    """Reads and writes the ``(User, TokenPair)`` pair."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def save(self, user: User, tokens: TokenPair) -> None:
        await self._kv.edit({USER_KEY: user.to_json(), TOKENS_KEY: tokens.to_json()})
        logger.debug("Stored credentials for user %s", user.id)

    async def load_user(self) -> User | None:
        return await self._load(USER_KEY, User.from_json)

    async def load_tokens(self) -> TokenPair | None:
        return await self._load(TOKENS_KEY, TokenPair.from_json)

    async def clear(self) -> None:
        await self._kv.edit({USER_KEY: None, TOKENS_KEY: None})
        logger.debug("Cleared stored credentials")

    async def observe_logged_in(self) -> AsyncIterator[bool]:
        """Yield whether both entries are present, now and after every mutation."""
        async with contextlib.aclosing(self._kv.observe()) as snapshots:
            async for snapshot in snapshots:
                yield USER_KEY in snapshot and TOKENS_KEY in snapshot

    # -- private helpers -----------------------------------------------------

    async def _load(self, key: str, decode: Callable[[str], _T]) -> _T | None:
        try:
            raw = await self._kv.get(key)
        except Exception as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return decode(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding corrupt %s entry: %s", key, exc)
            return None
