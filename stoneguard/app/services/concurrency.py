"""
In-process concurrency controls.

Both are resource protection only: financial state relies on conditional
database updates, not on these counters, and the counters are per process.
One instance of each lives on the application, never at module level.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)


class ConcurrencySlot:
    """A held slot; release() is idempotent."""

    def __init__(self, limiter: "ConcurrencyLimiter", key: str):
        self._limiter = limiter
        self._key = key
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._limiter._release(self._key)


class ConcurrencyLimiter:
    """Per-endpoint active request cap; requests over the cap are rejected."""

    def __init__(self, max_concurrent: int, retry_after_seconds: int):
        self.max_concurrent = max_concurrent
        self.retry_after_seconds = retry_after_seconds
        self._active: Dict[str, int] = defaultdict(int)

    def active(self, key: str) -> int:
        return self._active.get(key, 0)

    def try_acquire(self, key: str) -> Optional[ConcurrencySlot]:
        # No await between the check and the increment
        if self._active[key] >= self.max_concurrent:
            return None
        self._active[key] += 1
        return ConcurrencySlot(self, key)

    def _release(self, key: str) -> None:
        remaining = self._active.get(key, 0) - 1
        if remaining > 0:
            self._active[key] = remaining
        else:
            self._active.pop(key, None)


class QueueTimeoutError(Exception):
    """A parked request did not get its turn in time"""

    def __init__(self, key: str, timeout_seconds: float):
        super().__init__(f"Timed out after {timeout_seconds}s waiting for {key}")
        self.key = key
        self.timeout_seconds = timeout_seconds


class RequestQueue:
    """
    Per-key serialization: requests over max_concurrent wait in arrival order
    instead of being rejected. A waiter that is cancelled or times out gives
    up its place; a holder's slot is released exactly once on every exit path.
    """

    def __init__(self, max_concurrent: int = 1, timeout_seconds: float = 30):
        self.max_concurrent = max_concurrent
        self.timeout_seconds = timeout_seconds
        self._semaphores: Dict[str, asyncio.Semaphore] = {}
        self._users: Dict[str, int] = defaultdict(int)

    def pending(self, key: str) -> int:
        """Requests holding or waiting for the key"""
        return self._users.get(key, 0)

    @asynccontextmanager
    async def slot(self, key: str) -> AsyncIterator[None]:
        semaphore = self._semaphores.get(key)
        if semaphore is None:
            semaphore = self._semaphores[key] = asyncio.Semaphore(self.max_concurrent)
        self._users[key] += 1
        try:
            try:
                await asyncio.wait_for(semaphore.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Request queue timeout for {key}")
                raise QueueTimeoutError(key, self.timeout_seconds)
            try:
                yield
            finally:
                semaphore.release()
        finally:
            self._users[key] -= 1
            if self._users[key] <= 0:
                self._users.pop(key, None)
                self._semaphores.pop(key, None)
