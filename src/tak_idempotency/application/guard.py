# src/tak_idempotency/application/guard.py
"""IdempotencyGuard — claim, lookup and record of client-keyed responses.

A key is claimed for ``lock_seconds`` while its call runs, then holds the
2xx response for ``ttl_seconds``. The guard never takes part in ledger
transactions. If recording fails after a ledger commit the only consequence
is that one replay is not deduplicated.
"""
import logging

from config.settings import settings
from src.tak_common.redis_client import get_redis, ping_redis
from src.tak_idempotency.domain.models import CachedResponse
from src.tak_idempotency.domain.store import IdempotencyStoreProtocol
from src.tak_idempotency.infrastructure.memory_store import InMemoryIdempotencyStore
from src.tak_idempotency.infrastructure.redis_store import RedisIdempotencyStore

logger = logging.getLogger(__name__)


class IdempotencyGuard:
    def __init__(
        self, store: IdempotencyStoreProtocol, ttl_seconds: int, lock_seconds: int = 120
    ) -> None:
        if ttl_seconds <= 0 or lock_seconds <= 0:
            raise ValueError("ttl_seconds and lock_seconds must be positive")
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._lock_seconds = lock_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def lookup(self, key: str) -> CachedResponse | None:
        cached = await self._store.get(key)
        if cached is not None:
            logger.info("Idempotency hit: key=%s status=%d", key, cached.status_code)
        return cached

    async def claim(self, key: str) -> bool:
        """Mark ``key`` in progress. False if another call holds it or it is recorded."""
        return await self._store.reserve(key, self._lock_seconds)

    async def record(
        self, key: str, status_code: int, body: bytes, media_type: str = "application/json"
    ) -> bool:
        """Store a 2xx response under a claimed ``key``; anything else frees the claim."""
        if not 200 <= status_code < 300:
            await self._store.release(key)
            return False
        return await self._store.put(
            key, CachedResponse(status_code, body, media_type), self._ttl_seconds
        )

    async def release(self, key: str) -> None:
        await self._store.release(key)

    async def close(self) -> None:
        await self._store.close()


async def build_idempotency_guard(backend: str | None = None) -> IdempotencyGuard:
    """Create the guard for the configured backend ("redis" or "memory")."""
    kind = backend or settings.IDEMPOTENCY_BACKEND
    store: IdempotencyStoreProtocol
    if kind == "redis":
        # Raises when the server is unreachable
        await ping_redis()
        store = RedisIdempotencyStore(await get_redis())
    elif kind == "memory":
        memory = InMemoryIdempotencyStore(settings.IDEMPOTENCY_SWEEP_INTERVAL_SECONDS)
        memory.start_sweeper()
        store = memory
    else:
        raise ValueError(f"Unknown IDEMPOTENCY_BACKEND: {kind}")
    logger.info("Idempotency backend: %s (ttl=%ds)", kind, settings.IDEMPOTENCY_TTL_SECONDS)
    return IdempotencyGuard(
        store, settings.IDEMPOTENCY_TTL_SECONDS, settings.IDEMPOTENCY_LOCK_SECONDS
    )
