"""Token validity against the wall clock."""

from __future__ import annotations

import time

from museum_auth.auth.models import TokenPair


def is_valid(tokens: TokenPair, now: float | None = None) -> bool:
    """Return True iff *now* (epoch seconds) is strictly before the expiry."""
    if now is None:
        now = time.time()
    return now < tokens.expires_at


def seconds_remaining(tokens: TokenPair, now: float | None = None) -> float:
    if now is None:
        now = time.time()
    return max(0.0, tokens.expires_at - now)
