"""Redis client factory — used for idempotency records only.

NOT used for request/offer/deal state (PostgreSQL is the single source of truth).
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(settings.REDIS_URL)
    return _redis_pool


async def ping_redis() -> bool:
    """True when the pool can reach the server; used at startup."""
    redis = await get_redis()
    return bool(await redis.ping())


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
