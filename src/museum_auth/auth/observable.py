"""Latest-value observable cell.

Pattern: State Cell
--------------------
The session manager owns exactly one ``StateCell`` holding the current
``SessionState``.  Reads are plain attribute access and never block.  Writes
are synchronous and notify listeners in registration order before ``set``
returns, so a synchronous subscriber observes every transition, including
the intermediate ``Loading``.

Late subscribers are called immediately with the current value; they never
have to wait for the next transition to learn where the session stands.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateCell(Generic[T]):
    """Holds one value and publishes every change to its subscribers."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: list[Callable[[T], None]] = []
        self._watchers: list[asyncio.Queue[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("State listener %r failed", listener)
        for queue in list(self._watchers):
            queue.put_nowait(value)

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register *listener*, call it with the current value and return an unsubscriber."""
        self._listeners.append(listener)
        try:
            listener(self._value)
        except Exception:
            logger.exception("State listener %r failed", listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def watch(self) -> AsyncIterator[T]:
        """Yield the current value, then every subsequent value."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        queue.put_nowait(self._value)
        self._watchers.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._watchers.remove(queue)
