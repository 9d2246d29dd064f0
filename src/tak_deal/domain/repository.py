# src/tak_deal/domain/repository.py
"""DealRepository Protocol — interface contract for the deals table.

Status writers are compare-and-set: they only update a row that is still in
``expected_status`` and return None otherwise, so a transition can never be
applied twice.
"""
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tak_deal.domain.models import Deal


class DealRepositoryProtocol(Protocol):
    async def insert_deal(self, db: AsyncSession, deal: Deal) -> Deal: ...

    async def get_deal(self, db: AsyncSession, deal_id: str) -> Deal | None: ...

    async def get_deal_for_update(self, db: AsyncSession, deal_id: str) -> Deal | None: ...

    async def get_deal_by_offer(self, db: AsyncSession, offer_id: str) -> Deal | None: ...

    async def transition(
        self,
        db: AsyncSession,
        deal_id: str,
        expected_status: str,
        new_status: str,
        approved_at: datetime | None = None,
        executed_at: datetime | None = None,
        execution_receipt: str | None = None,
        failure_reason: str | None = None,
    ) -> Deal | None: ...

    async def list_deals(
        self,
        db: AsyncSession,
        status: str | None,
        request_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Deal]: ...

    async def delete_deal(
        self, db: AsyncSession, deal_id: str, expected_status: str
    ) -> bool: ...
