# src/tak_negotiation/domain/repository.py
"""NegotiationRepository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.

Transaction ownership: the CALLER (application service) commits or rolls back.
The ``*_for_update`` readers take row locks that last until that point.
"""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tak_negotiation.domain.models import Offer, Request


class NegotiationRepositoryProtocol(Protocol):
    # --- requests ---
    async def insert_request(self, db: AsyncSession, request: Request) -> Request: ...

    async def get_request(self, db: AsyncSession, request_id: str) -> Request | None: ...

    async def get_request_for_update(
        self, db: AsyncSession, request_id: str
    ) -> Request | None: ...

    async def set_request_status(
        self, db: AsyncSession, request_id: str, status: str
    ) -> Request: ...

    async def list_requests(
        self,
        db: AsyncSession,
        status: str | None,
        requester_agent_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Request]: ...

    async def count_live_offers(self, db: AsyncSession, request_id: str) -> int: ...

    async def delete_request(self, db: AsyncSession, request_id: str) -> int: ...

    # --- offers ---
    async def insert_offer(self, db: AsyncSession, offer: Offer) -> Offer: ...

    async def get_offer(self, db: AsyncSession, offer_id: str) -> Offer | None: ...

    async def get_offer_for_update(self, db: AsyncSession, offer_id: str) -> Offer | None: ...

    async def set_offer_status(self, db: AsyncSession, offer_id: str, status: str) -> Offer: ...

    async def update_offer_terms(
        self,
        db: AsyncSession,
        offer_id: str,
        price_nano: int | None,
        terms: str | None,
    ) -> Offer: ...

    async def reject_pending_offers(
        self, db: AsyncSession, request_id: str, exclude_offer_id: str | None
    ) -> int: ...

    async def list_offers(
        self,
        db: AsyncSession,
        request_id: str | None,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Offer]: ...

    async def delete_offer(self, db: AsyncSession, offer_id: str) -> None: ...
