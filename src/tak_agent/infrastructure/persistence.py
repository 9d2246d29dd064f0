"""AgentDirectory — raw SQL lookups against the agents table."""
from collections.abc import Iterable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

_AGENT_EXISTS_SQL = text("SELECT 1 FROM agents WHERE id = :agent_id")

_AGENT_NAMES_SQL = text("SELECT id, name FROM agents WHERE id = ANY(:ids)")


class AgentDirectory:
    async def agent_exists(self, db: AsyncSession, agent_id: str) -> bool:
        result = await db.execute(_AGENT_EXISTS_SQL, {"agent_id": agent_id})
        return result.fetchone() is not None

    async def agent_names(self, db: AsyncSession, agent_ids: Iterable[str]) -> dict[str, str]:
        """Map each known id to its name; unknown ids are left out."""
        ids = sorted(set(agent_ids))
        if not ids:
            return {}
        result = await db.execute(_AGENT_NAMES_SQL, {"ids": ids})
        return {row.id: row.name for row in result.fetchall()}
