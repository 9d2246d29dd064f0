# src/tak_idempotency/domain/store.py
"""IdempotencyStore Protocol — where cached responses live until they expire.

Implementations own expiry: an entry older than its TTL must never be
returned, and must eventually be purged.

A key is first claimed with reserve(), which writes an in-progress marker
only if the key is absent. The caller that holds the claim either put()s the
final response over the marker or release()s it. get() never returns the
marker.
"""
from typing import Protocol

from src.tak_idempotency.domain.models import CachedResponse


class IdempotencyStoreProtocol(Protocol):
    async def get(self, key: str) -> CachedResponse | None: ...

    async def reserve(self, key: str, ttl_seconds: int) -> bool: ...

    async def put(self, key: str, record: CachedResponse, ttl_seconds: int) -> bool: ...

    async def release(self, key: str) -> None: ...

    async def close(self) -> None: ...
