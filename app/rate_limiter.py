"""Simple in-memory rate limiting helpers."""

from __future__ import annotations

import asyncio
import os
import time
from collections import deque
from typing import Deque, Dict, Optional


class RateLimitExceeded(Exception):
    """Raised by :meth:`RateLimiter.check` when a key is over its budget."""


class RateLimiter:
    """An asyncio-friendly sliding window rate limiter.

    State lives in the process, so with several workers each one enforces
    its own window.
    """

    def __init__(self, *, limit: int, window_seconds: float) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window = window_seconds
        self._lock = asyncio.Lock()
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = time.monotonic()

    def _sweep(self, cutoff: float) -> None:
        """Forget keys whose newest hit has left the window."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    async def try_acquire(self, key: str) -> bool:
        now = time.monotonic()
        cutoff = now - self.window

        async with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.limit:
                return False

            hits.append(now)
            return True

    async def check(self, key: str) -> None:
        if not await self.try_acquire(key):
            raise RateLimitExceeded(key)


_submission_limiter: Optional[RateLimiter] = None


def get_submission_rate_limiter() -> Optional[RateLimiter]:
    """Return the shared limiter for flag submissions, or None when disabled."""

    global _submission_limiter
    if _submission_limiter is not None:
        return _submission_limiter

    try:
        limit = int(os.getenv("FLAG_SUBMISSION_RATE_LIMIT", "0"))
        window = float(os.getenv("FLAG_SUBMISSION_RATE_WINDOW", "60"))
    except ValueError:
        limit, window = 0, 60.0

    if limit <= 0:
        return None

    _submission_limiter = RateLimiter(limit=limit, window_seconds=window)
    return _submission_limiter


__all__ = ["RateLimitExceeded", "RateLimiter", "get_submission_rate_limiter"]
