"""In-process idempotency store for single-worker development and tests.

Entries carry a monotonic deadline. get() ignores expired entries; a
background sweep task (start_sweeper) purges them every ``sweep_interval_s``
so the map stays bounded by the traffic of one retention window.
An entry whose record is None is an in-progress claim.
"""
import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from src.tak_idempotency.domain.models import CachedResponse

logger = logging.getLogger(__name__)


class InMemoryIdempotencyStore:
    def __init__(
        self,
        sweep_interval_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, CachedResponse | None]] = {}
        self._sweep_interval_s = sweep_interval_s
        self._sweeper: asyncio.Task[None] | None = None

    def _live(self, key: str) -> tuple[float, CachedResponse | None] | None:
        entry = self._entries.get(key)
        if entry is not None and entry[0] <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry

    async def get(self, key: str) -> CachedResponse | None:
        entry = self._live(key)
        return entry[1] if entry is not None else None

    async def reserve(self, key: str, ttl_seconds: int) -> bool:
        if self._live(key) is not None:
            return False
        self._entries[key] = (self._clock() + ttl_seconds, None)
        return True

    async def put(self, key: str, record: CachedResponse, ttl_seconds: int) -> bool:
        entry = self._live(key)
        if entry is not None and entry[1] is not None:
            return False
        self._entries[key] = (self._clock() + ttl_seconds, record)
        return True

    async def release(self, key: str) -> None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] is None:
            del self._entries[key]

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (deadline, _) in self._entries.items() if deadline <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval_s)
            purged = self.purge_expired()
            if purged:
                logger.debug("Purged %d expired idempotency records", purged)

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
