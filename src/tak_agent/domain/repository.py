# src/tak_agent/domain/repository.py
"""AgentDirectory Protocol — read-only view of the externally managed agent registry.

Agent registration lives outside this service; the negotiation core only
needs to know whether a referenced agent exists, and its display name.
"""
from collections.abc import Iterable
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class AgentDirectoryProtocol(Protocol):
    async def agent_exists(self, db: AsyncSession, agent_id: str) -> bool: ...

    async def agent_names(
        self, db: AsyncSession, agent_ids: Iterable[str]
    ) -> dict[str, str]: ...
