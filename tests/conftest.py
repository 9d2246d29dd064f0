"""Shared test fixtures.

The in-memory repositories below implement the repository Protocols with
plain dicts. Every read returns a copy, the way a fresh SELECT would, so a
caller mutating a returned object never changes what is "stored".
Transactions are not modelled: use an AsyncMock repository to assert
commit/rollback behaviour.
"""

from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.tak_common.database import get_db_session
from src.tak_common.datetime_utils import utc_now
from src.tak_common.errors import DealAlreadyExistsError
from src.tak_deal.api.dependencies import get_deal_service
from src.tak_deal.application.service import DealApplicationService
from src.tak_deal.domain.adapter import ExecutionError
from src.tak_deal.domain.models import Deal, DealSnapshot
from src.tak_idempotency.application.guard import IdempotencyGuard
from src.tak_idempotency.infrastructure.memory_store import InMemoryIdempotencyStore
from src.tak_negotiation.api.dependencies import get_negotiation_service
from src.tak_negotiation.application.service import NegotiationApplicationService
from src.tak_negotiation.domain.models import Offer, Request

BUYER = "ag_buyer_test_001"
PROVIDER_A = "ag_data_test_001"
PROVIDER_B = "ag_data_test_002"


# ---------------------------------------------------------------------------
# In-memory repositories
# ---------------------------------------------------------------------------


class InMemoryAgentDirectory:
    def __init__(self, names: dict[str, str]) -> None:
        self.names = dict(names)

    async def agent_exists(self, db, agent_id: str) -> bool:
        return agent_id in self.names

    async def agent_names(self, db, agent_ids) -> dict[str, str]:
        return {a: self.names[a] for a in agent_ids if a in self.names}


class InMemoryNegotiationRepository:
    def __init__(self) -> None:
        self.requests: dict[str, Request] = {}
        self.offers: dict[str, Offer] = {}

    # --- requests ---

    async def insert_request(self, db, request: Request) -> Request:
        now = utc_now()
        self.requests[request.id] = replace(request, created_at=now, updated_at=now)
        return replace(self.requests[request.id])

    async def get_request(self, db, request_id: str) -> Request | None:
        request = self.requests.get(request_id)
        return replace(request) if request else None

    async def get_request_for_update(self, db, request_id: str) -> Request | None:
        return await self.get_request(db, request_id)

    async def set_request_status(self, db, request_id: str, status: str) -> Request:
        request = self.requests[request_id]
        request.status = status
        request.updated_at = utc_now()
        return replace(request)

    async def list_requests(self, db, status, requester_agent_id, cursor_id, limit):
        rows = [
            r
            for r in sorted(self.requests.values(), key=lambda r: r.id, reverse=True)
            if (status is None or r.status == status)
            and (requester_agent_id is None or r.requester_agent_id == requester_agent_id)
            and (cursor_id is None or r.id < cursor_id)
        ]
        return [replace(r) for r in rows[:limit]]

    # --- offers ---

    async def insert_offer(self, db, offer: Offer) -> Offer:
        now = utc_now()
        self.offers[offer.id] = replace(offer, created_at=now, updated_at=now)
        return replace(self.offers[offer.id])

    async def get_offer(self, db, offer_id: str) -> Offer | None:
        offer = self.offers.get(offer_id)
        return replace(offer) if offer else None

    async def get_offer_for_update(self, db, offer_id: str) -> Offer | None:
        return await self.get_offer(db, offer_id)

    async def set_offer_status(self, db, offer_id: str, status: str) -> Offer:
        offer = self.offers[offer_id]
        offer.status = status
        offer.updated_at = utc_now()
        return replace(offer)

    async def update_offer_terms(self, db, offer_id, price_nano, terms) -> Offer:
        offer = self.offers[offer_id]
        if price_nano is not None:
            offer.price_nano = price_nano
        if terms is not None:
            offer.terms = terms
        offer.updated_at = utc_now()
        return replace(offer)

    async def reject_pending_offers(self, db, request_id, exclude_offer_id) -> int:
        count = 0
        for offer in self.offers.values():
            if (
                offer.request_id == request_id
                and offer.status == "pending"
                and offer.id != exclude_offer_id
            ):
                offer.status = "rejected"
                count += 1
        return count

    async def list_offers(self, db, request_id, status, cursor_id, limit):
        rows = [
            o
            for o in sorted(self.offers.values(), key=lambda o: o.id, reverse=True)
            if (request_id is None or o.request_id == request_id)
            and (status is None or o.status == status)
            and (cursor_id is None or o.id < cursor_id)
        ]
        return [replace(o) for o in rows[:limit]]

    # --- deletion ---

    async def count_live_offers(self, db, request_id: str) -> int:
        return sum(
            1
            for o in self.offers.values()
            if o.request_id == request_id and o.status in ("pending", "accepted")
        )

    async def delete_request(self, db, request_id: str) -> int:
        doomed = [o.id for o in self.offers.values() if o.request_id == request_id]
        for offer_id in doomed:
            del self.offers[offer_id]
        self.requests.pop(request_id, None)
        return len(doomed)

    async def delete_offer(self, db, offer_id: str) -> None:
        self.offers.pop(offer_id, None)


class InMemoryDealRepository:
    def __init__(self) -> None:
        self.deals: dict[str, Deal] = {}

    async def insert_deal(self, db, deal: Deal) -> Deal:
        # Mirrors the uq_deals_offer_id constraint
        if any(d.offer_id == deal.offer_id for d in self.deals.values()):
            raise DealAlreadyExistsError(deal.offer_id)
        now = utc_now()
        self.deals[deal.id] = replace(deal, created_at=now, updated_at=now)
        return replace(self.deals[deal.id])

    async def get_deal(self, db, deal_id: str) -> Deal | None:
        deal = self.deals.get(deal_id)
        return replace(deal) if deal else None

    async def get_deal_for_update(self, db, deal_id: str) -> Deal | None:
        return await self.get_deal(db, deal_id)

    async def get_deal_by_offer(self, db, offer_id: str) -> Deal | None:
        for deal in self.deals.values():
            if deal.offer_id == offer_id:
                return replace(deal)
        return None

    async def transition(
        self,
        db,
        deal_id: str,
        expected_status: str,
        new_status: str,
        approved_at: datetime | None = None,
        executed_at: datetime | None = None,
        execution_receipt: str | None = None,
        failure_reason: str | None = None,
    ) -> Deal | None:
        deal = self.deals.get(deal_id)
        if deal is None or deal.status != expected_status:
            return None
        deal.status = new_status
        if approved_at is not None:
            deal.approved_at = approved_at
        if executed_at is not None:
            deal.executed_at = executed_at
        if execution_receipt is not None:
            deal.execution_receipt = execution_receipt
        if failure_reason is not None:
            deal.failure_reason = failure_reason
        deal.updated_at = utc_now()
        return replace(deal)

    async def list_deals(self, db, status, request_id, cursor_id, limit):
        rows = [
            d
            for d in sorted(self.deals.values(), key=lambda d: d.id, reverse=True)
            if (status is None or d.status == status)
            and (request_id is None or d.request_id == request_id)
            and (cursor_id is None or d.id < cursor_id)
        ]
        return [replace(d) for d in rows[:limit]]

    async def delete_deal(self, db, deal_id: str, expected_status: str) -> bool:
        deal = self.deals.get(deal_id)
        if deal is None or deal.status != expected_status:
            return False
        del self.deals[deal_id]
        return True


# ---------------------------------------------------------------------------
# Execution adapters
# ---------------------------------------------------------------------------


class RecordingAdapter:
    name = "RecordingAdapter"

    def __init__(self, receipt: str = "rcpt_test_0001") -> None:
        self.receipt = receipt
        self.calls: list[DealSnapshot] = []

    async def execute_payment(self, snapshot: DealSnapshot) -> str:
        self.calls.append(snapshot)
        return self.receipt


class FailingAdapter:
    name = "FailingAdapter"

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ExecutionError("insufficient liquidity")
        self.calls: list[DealSnapshot] = []

    async def execute_payment(self, snapshot: DealSnapshot) -> str:
        self.calls.append(snapshot)
        raise self.exc


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def agents() -> InMemoryAgentDirectory:
    return InMemoryAgentDirectory(
        {BUYER: "Test Buyer", PROVIDER_A: "Data Provider A", PROVIDER_B: "Data Provider B"}
    )


@pytest.fixture
def negotiation_repo() -> InMemoryNegotiationRepository:
    return InMemoryNegotiationRepository()


@pytest.fixture
def deal_repo() -> InMemoryDealRepository:
    return InMemoryDealRepository()


@pytest.fixture
def recording_adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def failing_adapter() -> FailingAdapter:
    return FailingAdapter()


@pytest.fixture
def negotiation_service(
    negotiation_repo: InMemoryNegotiationRepository, agents: InMemoryAgentDirectory
) -> NegotiationApplicationService:
    return NegotiationApplicationService(repo=negotiation_repo, agents=agents)


@pytest.fixture
def deal_service(
    deal_repo: InMemoryDealRepository,
    negotiation_repo: InMemoryNegotiationRepository,
    recording_adapter: RecordingAdapter,
) -> DealApplicationService:
    return DealApplicationService(
        repo=deal_repo,
        negotiation_repo=negotiation_repo,
        adapter=recording_adapter,
        execution_timeout_s=1.0,
    )


@pytest.fixture
def idempotency_guard() -> IdempotencyGuard:
    return IdempotencyGuard(InMemoryIdempotencyStore(), ttl_seconds=86_400)


@pytest.fixture
async def client(
    db: AsyncMock,
    negotiation_service: NegotiationApplicationService,
    deal_service: DealApplicationService,
    idempotency_guard: IdempotencyGuard,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client for the app, wired to the in-memory repositories.

    ASGITransport does not run the lifespan, so the guard is installed here.
    """
    app.dependency_overrides[get_db_session] = lambda: db
    app.dependency_overrides[get_negotiation_service] = lambda: negotiation_service
    app.dependency_overrides[get_deal_service] = lambda: deal_service
    app.state.idempotency_guard = idempotency_guard
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    del app.state.idempotency_guard
