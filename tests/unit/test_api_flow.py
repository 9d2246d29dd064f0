"""End-to-end API flows over the in-memory repositories (no PG, no Redis).

Uses the ``client`` fixture from tests/conftest.py, which overrides the DB
session and both services and installs an in-memory idempotency guard.
"""

import asyncio
import logging

from httpx import AsyncClient

from src.main import app
from src.tak_deal.api.dependencies import get_deal_service
from src.tak_deal.application.service import DealApplicationService

BUYER = "ag_buyer_test_001"
PROVIDER_A = "ag_data_test_001"
PROVIDER_B = "ag_data_test_002"

TON = 1_000_000_000


async def _create_request(client: AsyncClient, ceiling: int = 2 * TON) -> str:
    resp = await client.post(
        "/api/v1/requests",
        json={
            "requester_agent_id": BUYER,
            "service_query": "BTC/USD hourly price feed",
            "max_price_nano": ceiling,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


async def _submit_offer(
    client: AsyncClient, request_id: str, provider: str = PROVIDER_A, price: int = 1_500_000_000
):
    return await client.post(
        "/api/v1/offers",
        json={"request_id": request_id, "provider_agent_id": provider, "price_nano": price},
    )


class TestHappyPath:
    async def test_request_offer_accept_deal_approve_execute(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)

        offer_resp = await _submit_offer(client, req_id)
        assert offer_resp.status_code == 201
        offer_id = offer_resp.json()["data"]["id"]

        accept = await client.post(f"/api/v1/offers/{offer_id}/accept")
        assert accept.status_code == 200
        assert accept.json()["data"]["request_status"] == "closed"

        deal_resp = await client.post(
            "/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id}
        )
        assert deal_resp.status_code == 201
        deal = deal_resp.json()["data"]
        assert deal["amount_nano"] == 1_500_000_000
        assert deal["status"] == "awaiting_approval"
        assert deal["payer_agent_id"] == BUYER
        assert deal["payee_agent_id"] == PROVIDER_A

        approve = await client.post(f"/api/v1/deals/{deal['id']}/approve")
        assert approve.status_code == 200
        assert approve.json()["data"]["status"] == "approved"
        assert approve.json()["data"]["approved_at"] is not None

        execute = await client.post(f"/api/v1/deals/{deal['id']}/execute")
        assert execute.status_code == 200
        body = execute.json()
        assert body["data"]["deal"]["status"] == "executed"
        assert body["data"]["deal"]["execution_receipt"]
        assert body["data"]["deal"]["executed_at"] is not None
        assert body["data"]["adapter"] == "RecordingAdapter"
        assert body["message"] == "Executed via RecordingAdapter. No funds were held."

    async def test_envelope_carries_request_id(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/requests",
            json={"requester_agent_id": BUYER, "service_query": "q", "max_price_nano": 10},
        )
        body = resp.json()
        assert body["code"] == 0
        assert body["request_id"].startswith("rid_")
        assert body["timestamp"]


class TestCeiling:
    async def test_offer_above_ceiling_rejected_without_row(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)

        resp = await _submit_offer(client, req_id, price=2_500_000_000)

        assert resp.status_code == 422
        assert resp.json()["code"] == 2003
        listing = await client.get("/api/v1/offers", params={"request_id": req_id})
        assert listing.json()["data"]["items"] == []

    async def test_float_price_rejected_at_edge(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        resp = await _submit_offer(client, req_id, price=1.5)  # type: ignore[arg-type]
        assert resp.status_code == 422
        assert resp.json()["code"] == 9003


    async def test_ceiling_beyond_bigint_rejected(
        self, client: AsyncClient, negotiation_repo
    ) -> None:
        resp = await client.post(
            "/api/v1/requests",
            json={"requester_agent_id": BUYER, "service_query": "q", "max_price_nano": 2**64},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 9001
        assert negotiation_repo.requests == {}


class TestCompetingOffers:
    async def test_accepting_first_rejects_second(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        first = (await _submit_offer(client, req_id, PROVIDER_A)).json()["data"]["id"]
        second = (await _submit_offer(client, req_id, PROVIDER_B, 1_800_000_000)).json()["data"][
            "id"
        ]

        accept = await client.post(f"/api/v1/offers/{first}/accept")
        assert accept.json()["data"]["other_offers_auto_rejected"] == 1

        second_state = await client.get(f"/api/v1/offers/{second}")
        assert second_state.json()["data"]["status"] == "rejected"
        request_state = await client.get(f"/api/v1/requests/{req_id}")
        assert request_state.json()["data"]["status"] == "closed"

        retry = await client.post(f"/api/v1/offers/{second}/accept")
        assert retry.status_code == 409
        assert retry.json()["data"]["current_status"] == "rejected"


class TestExecutionFailure:
    async def test_failed_execution_then_conflict(
        self, client: AsyncClient, deal_repo, negotiation_repo, failing_adapter
    ) -> None:
        app.dependency_overrides[get_deal_service] = lambda: DealApplicationService(
            repo=deal_repo, negotiation_repo=negotiation_repo, adapter=failing_adapter
        )
        req_id = await _create_request(client)
        offer_id = (await _submit_offer(client, req_id)).json()["data"]["id"]
        await client.post(f"/api/v1/offers/{offer_id}/accept")
        deal_id = (
            await client.post("/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id})
        ).json()["data"]["id"]
        await client.post(f"/api/v1/deals/{deal_id}/approve")

        failed = await client.post(f"/api/v1/deals/{deal_id}/execute")
        assert failed.status_code == 502
        assert failed.json()["code"] == 5001
        assert failed.json()["data"]["deal_status"] == "failed"

        state = await client.get(f"/api/v1/deals/{deal_id}")
        assert state.json()["data"]["status"] == "failed"
        assert state.json()["data"]["failure_reason"] == "insufficient liquidity"

        again = await client.post(f"/api/v1/deals/{deal_id}/execute")
        assert again.status_code == 409
        assert again.json()["code"] == 3002
        assert len(failing_adapter.calls) == 1

    async def test_execute_before_approval_conflicts(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = (await _submit_offer(client, req_id)).json()["data"]["id"]
        await client.post(f"/api/v1/offers/{offer_id}/accept")
        deal_id = (
            await client.post("/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id})
        ).json()["data"]["id"]

        resp = await client.post(f"/api/v1/deals/{deal_id}/execute")

        assert resp.status_code == 409
        assert "Must be 'approved'" in resp.json()["message"]


class TestIdempotentCreate:
    async def test_replayed_create_request_returns_same_body(
        self, client: AsyncClient, negotiation_repo
    ) -> None:
        payload = {
            "requester_agent_id": BUYER,
            "service_query": "weather feed",
            "max_price_nano": TON,
        }
        headers = {"Idempotency-Key": "create-req-001"}

        first = await client.post("/api/v1/requests", json=payload, headers=headers)
        second = await client.post("/api/v1/requests", json=payload, headers=headers)

        assert first.status_code == second.status_code == 201
        assert first.content == second.content
        assert second.headers["idempotent-replayed"] == "true"
        assert len(negotiation_repo.requests) == 1

    async def test_overlapping_replays_create_one_request(
        self, client: AsyncClient, agents, negotiation_repo, monkeypatch
    ) -> None:
        known = agents.agent_exists

        async def slow_agent_exists(db, agent_id: str) -> bool:
            await asyncio.sleep(0.05)
            return await known(db, agent_id)

        monkeypatch.setattr(agents, "agent_exists", slow_agent_exists)
        payload = {"requester_agent_id": BUYER, "service_query": "q", "max_price_nano": TON}
        headers = {"Idempotency-Key": "create-req-overlap"}

        first, second = await asyncio.gather(
            client.post("/api/v1/requests", json=payload, headers=headers),
            client.post("/api/v1/requests", json=payload, headers=headers),
        )

        assert sorted([first.status_code, second.status_code]) == [201, 409]
        assert len(negotiation_repo.requests) == 1
        created = first if first.status_code == 201 else second
        retry = await client.post("/api/v1/requests", json=payload, headers=headers)
        assert retry.content == created.content

    async def test_replayed_accept_does_not_conflict(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = (await _submit_offer(client, req_id)).json()["data"]["id"]
        headers = {"Idempotency-Key": f"accept-{offer_id}"}

        first = await client.post(f"/api/v1/offers/{offer_id}/accept", headers=headers)
        second = await client.post(f"/api/v1/offers/{offer_id}/accept", headers=headers)

        assert first.status_code == second.status_code == 200
        assert first.content == second.content


class TestErrors:
    async def test_unknown_requester_is_422(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/requests",
            json={"requester_agent_id": "ag_ghost", "service_query": "q", "max_price_nano": 1},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 4001

    async def test_unknown_deal_is_404(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/deals/deal_missing")
        assert resp.status_code == 404
        assert resp.json()["code"] == 3001

    async def test_cancel_request(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        await _submit_offer(client, req_id)

        resp = await client.post(f"/api/v1/requests/{req_id}/cancel")

        assert resp.status_code == 200
        assert resp.json()["data"]["request"]["status"] == "cancelled"
        assert resp.json()["data"]["offers_rejected"] == 1


class TestDeletion:
    async def test_withdraw_offer_then_delete_cancelled_request(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = (await _submit_offer(client, req_id)).json()["data"]["id"]

        blocked = await client.delete(f"/api/v1/requests/{req_id}")
        assert blocked.status_code == 409
        assert blocked.json()["code"] == 1004

        withdrawn = await client.delete(f"/api/v1/offers/{offer_id}")
        assert withdrawn.json()["data"] == {"deleted": offer_id}
        await client.post(f"/api/v1/requests/{req_id}/cancel")

        deleted = await client.delete(f"/api/v1/requests/{req_id}")
        assert deleted.status_code == 200
        assert deleted.json()["data"] == {"deleted": req_id, "offers_deleted": 0}
        gone = await client.get(f"/api/v1/requests/{req_id}")
        assert gone.status_code == 404

    async def test_only_cancelled_deal_is_deleted(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        offer_id = (await _submit_offer(client, req_id)).json()["data"]["id"]
        await client.post(f"/api/v1/offers/{offer_id}/accept")
        deal_id = (
            await client.post("/api/v1/deals", json={"request_id": req_id, "offer_id": offer_id})
        ).json()["data"]["id"]

        live = await client.delete(f"/api/v1/deals/{deal_id}")
        assert live.status_code == 409
        assert live.json()["data"]["current_status"] == "awaiting_approval"

        await client.post(f"/api/v1/deals/{deal_id}/cancel")
        deleted = await client.delete(f"/api/v1/deals/{deal_id}")
        assert deleted.status_code == 200
        assert (await client.get(f"/api/v1/deals/{deal_id}")).status_code == 404

    async def test_names_in_reads(self, client: AsyncClient) -> None:
        req_id = await _create_request(client)
        await _submit_offer(client, req_id, PROVIDER_B)

        request = await client.get(f"/api/v1/requests/{req_id}")
        offers = await client.get("/api/v1/offers", params={"request_id": req_id})

        assert request.json()["data"]["requester_name"] == "Test Buyer"
        assert offers.json()["data"]["items"][0]["provider_name"] == "Data Provider B"


class TestInfo:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"

    async def test_info_names_adapter(self, client: AsyncClient) -> None:
        resp = await client.get("/")
        assert resp.json()["execution_adapter"] == "RecordingAdapter"


class TestRequestLog:
    async def test_request_id_header_matches_envelope(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/requests",
            json={"requester_agent_id": BUYER, "service_query": "q", "max_price_nano": 10},
        )
        assert resp.headers["x-request-id"] == resp.json()["request_id"]

    async def test_replay_is_tagged_in_log(self, client: AsyncClient, caplog) -> None:
        caplog.set_level(logging.INFO, logger="tak.request")
        payload = {"requester_agent_id": BUYER, "service_query": "q", "max_price_nano": 10}
        headers = {"Idempotency-Key": "log-replay-001"}

        await client.post("/api/v1/requests", json=payload, headers=headers)
        await client.post("/api/v1/requests", json=payload, headers=headers)

        lines = [r.getMessage() for r in caplog.records if r.name == "tak.request"]
        assert len(lines) == 2
        assert not lines[0].endswith("replay")
        assert lines[1].endswith("replay")
