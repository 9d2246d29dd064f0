"""Redis-backed idempotency store.

Key pattern: "idem:{client_key}". Expiry is delegated to Redis (SET ... EX),
which is the purge sweep. reserve() claims the key with an in-progress marker
(SET NX) so that overlapping calls with the same key cannot both run; the
holder then overwrites the marker with the response, or deletes it.
"""
import redis.asyncio as aioredis

from src.tak_idempotency.domain.models import CachedResponse

_KEY_PREFIX = "idem:"
_IN_PROGRESS = "__in_progress__"


class RedisIdempotencyStore:
    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def get(self, key: str) -> CachedResponse | None:
        raw = await self._redis.get(_KEY_PREFIX + key)
        if raw is None or raw in (_IN_PROGRESS, _IN_PROGRESS.encode()):
            return None
        return CachedResponse.from_json(raw)

    async def reserve(self, key: str, ttl_seconds: int) -> bool:
        claimed = await self._redis.set(_KEY_PREFIX + key, _IN_PROGRESS, ex=ttl_seconds, nx=True)
        return bool(claimed)

    async def put(self, key: str, record: CachedResponse, ttl_seconds: int) -> bool:
        # Only the holder of the claim writes, so the marker is overwritten
        stored = await self._redis.set(_KEY_PREFIX + key, record.to_json(), ex=ttl_seconds)
        return bool(stored)

    async def release(self, key: str) -> None:
        await self._redis.delete(_KEY_PREFIX + key)

    async def close(self) -> None:
        # The shared pool is closed by src.tak_common.redis_client.close_redis()
        return None
