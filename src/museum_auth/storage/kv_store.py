"""String-keyed persistence used underneath the credential store.

Pattern: Atomic Batch Edit
---------------------------
Every mutation goes through ``edit``, which applies a whole mapping of
changes at once (``None`` removes a key).  Readers and observers only ever
see the snapshot before or after an edit, never a half-applied one.  This
is what lets the credential store persist a user and its tokens as a pair.

Two implementations are provided:

  - ``InMemoryKeyValueStore`` for tests and ephemeral sessions.
  - ``JsonFileKeyValueStore`` which keeps one JSON object on disk and
    replaces the file atomically on every edit.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import pathlib
import tempfile
from collections.abc import AsyncIterator, Mapping
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when persisted data cannot be written."""


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def edit(self, changes: Mapping[str, str | None]) -> None:
        ...

    def observe(self) -> AsyncIterator[Mapping[str, str]]:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store.  Snapshots are published to observers after each edit."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()
        self._observers: list[asyncio.Queue[dict[str, str]]] = []

    async def get(self, key: str) -> str | None:
        return self._read().get(key)

    async def set(self, key: str, value: str) -> None:
        await self.edit({key: value})

    async def remove(self, key: str) -> None:
        await self.edit({key: None})

    async def edit(self, changes: Mapping[str, str | None]) -> None:
        async with self._lock:
            updated = dict(self._read())
            for key, value in changes.items():
                if value is None:
                    updated.pop(key, None)
                else:
                    updated[key] = value
            await self._write(updated)
            self._publish(updated)

    async def observe(self) -> AsyncIterator[Mapping[str, str]]:
        queue: asyncio.Queue[dict[str, str]] = asyncio.Queue()
        queue.put_nowait(dict(self._read()))
        self._observers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._observers.remove(queue)

    # -- storage hooks --------------------------------------------------------

    def _read(self) -> dict[str, str]:
        return self._data

    async def _write(self, data: dict[str, str]) -> None:
        self._data = data

    # -- private helpers ------------------------------------------------------

    def _publish(self, snapshot: dict[str, str]) -> None:
        for queue in list(self._observers):
            queue.put_nowait(dict(snapshot))


class JsonFileKeyValueStore(InMemoryKeyValueStore):
    """Persists the mapping as a single JSON object at *path*.

    Unreadable or corrupt files are treated as empty.  Write failures raise
    ``StorageError``; the in-memory view is only updated once the file has
    been replaced.
    """

    def __init__(self, path: str | pathlib.Path) -> None:
        self._path = pathlib.Path(path).expanduser()
        super().__init__(self._load())

    @property
    def path(self) -> pathlib.Path:
        return self._path

    async def _write(self, data: dict[str, str]) -> None:
        write = asyncio.ensure_future(asyncio.to_thread(self._dump, data))
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; keep memory in step with disk.
            await asyncio.wait({write})
            if write.exception() is None:
                self._data = data
                self._publish(data)
            raise
        except OSError as exc:
            raise StorageError(f"Could not write {self._path}: {exc}") from exc
        self._data = data

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring store %s: top level is not an object", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".kv-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_name, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
