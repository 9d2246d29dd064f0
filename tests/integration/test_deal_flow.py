"""Integration tests for the negotiation and deal flow (requires migrated PG).

Uses the session-scoped client fixture from tests/integration/conftest.py.
All tests share one event loop — avoids asyncpg pool cross-loop error.
Concurrent calls below go through separate pooled sessions, so the row
locks and the uq_deals_offer_id constraint are what serialize them.
"""

import asyncio
import uuid

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio(loop_scope="session")

BUYER = "ag_buyer_seed_001"
PROVIDER_A = "ag_data_seed_001"
PROVIDER_B = "ag_data_seed_002"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_request(client: AsyncClient, ceiling: int = 2_000_000_000) -> str:
    resp = await client.post(
        "/api/v1/requests",
        json={
            "requester_agent_id": BUYER,
            "service_query": f"integration feed {uuid.uuid4().hex[:8]}",
            "max_price_nano": ceiling,
        },
    )
    assert resp.status_code == 201, resp.text
    return str(resp.json()["data"]["id"])


async def _submit_offer(client: AsyncClient, request_id: str, provider: str, price: int) -> str:
    resp = await client.post(
        "/api/v1/offers",
        json={"request_id": request_id, "provider_agent_id": provider, "price_nano": price},
    )
    assert resp.status_code == 201, resp.text
    return str(resp.json()["data"]["id"])


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestFullFlow:
    async def test_request_to_executed_deal(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = await _submit_offer(client, req_id, PROVIDER_A, 1_500_000_000)

        accept = await client.post(f"/api/v1/offers/{offer_id}/accept")
        assert accept.status_code == 200, accept.text

        deal = await client.post("/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id})
        assert deal.status_code == 201, deal.text
        deal_id = deal.json()["data"]["id"]
        assert deal.json()["data"]["amount_nano"] == 1_500_000_000

        approve = await client.post(f"/api/v1/deals/{deal_id}/approve")
        assert approve.json()["data"]["status"] == "approved"

        execute = await client.post(f"/api/v1/deals/{deal_id}/execute")
        assert execute.status_code == 200, execute.text
        data = execute.json()["data"]["deal"]
        assert data["status"] == "executed"
        assert data["execution_receipt"].startswith("mcp_receipt_")

    async def test_offer_above_ceiling_leaves_no_row(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        resp = await client.post(
            "/api/v1/offers",
            json={"request_id": req_id, "provider_agent_id": PROVIDER_A, "price_nano": 2_500_000_000},
        )
        assert resp.status_code == 422
        listing = await client.get("/api/v1/offers", params={"request_id": req_id})
        assert listing.json()["data"]["items"] == []


class TestConcurrency:
    async def test_concurrent_accepts_have_one_winner(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        a = await _submit_offer(client, req_id, PROVIDER_A, 1_000_000_000)
        b = await _submit_offer(client, req_id, PROVIDER_B, 1_100_000_000)

        results = await asyncio.gather(
            client.post(f"/api/v1/offers/{a}/accept"),
            client.post(f"/api/v1/offers/{b}/accept"),
        )

        assert sorted(r.status_code for r in results) == [200, 409]
        offers = await client.get("/api/v1/offers", params={"request_id": req_id})
        statuses = sorted(o["status"] for o in offers.json()["data"]["items"])
        assert statuses == ["accepted", "rejected"]

    async def test_concurrent_deal_creation_has_one_winner(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = await _submit_offer(client, req_id, PROVIDER_A, 1_000_000_000)
        await client.post(f"/api/v1/offers/{offer_id}/accept")
        body = {"request_id": req_id, "offer_id": offer_id}

        results = await asyncio.gather(
            client.post("/api/v1/deals", json=body),
            client.post("/api/v1/deals", json=body),
        )

        assert sorted(r.status_code for r in results) == [201, 409]
        deals = await client.get("/api/v1/deals", params={"request_id": req_id})
        assert len(deals.json()["data"]["items"]) == 1

    async def test_concurrent_executes_settle_once(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = await _submit_offer(client, req_id, PROVIDER_A, 1_000_000_000)
        await client.post(f"/api/v1/offers/{offer_id}/accept")
        deal_id = (
            await client.post("/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id})
        ).json()["data"]["id"]
        await client.post(f"/api/v1/deals/{deal_id}/approve")

        results = await asyncio.gather(
            client.post(f"/api/v1/deals/{deal_id}/execute"),
            client.post(f"/api/v1/deals/{deal_id}/execute"),
        )

        assert sorted(r.status_code for r in results) == [200, 409]
