"""Smoke-run the full negotiation → deal → execution flow against a live server.

Usage:
    uvicorn src.main:app --port 8000      # in another shell, after `alembic upgrade head`
    python run_demo_flow.py

Uses the seeded agents from migration 006.
"""
import json
import urllib.error
import urllib.request
import uuid

BASE = "http://localhost:8000/api/v1"

BUYER = "ag_buyer_seed_001"
PROVIDER_A = "ag_data_seed_001"
PROVIDER_B = "ag_data_seed_002"


def call(method, path, body=None, key=None):
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(
        f"{BASE}{path}",
        data=data,
        method=method,
        headers={"Content-Type": "application/json"},
    )
    if key:
        req.add_header("Idempotency-Key", key)
    try:
        with urllib.request.urlopen(req) as r:
            return r.status, json.loads(r.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def section(title):
    print(f"\n{'='*60}")
    print(f"### {title} ###")
    print('='*60)


def out(label, result):
    status, payload = result
    print(f"\n--- {label} → HTTP {status} ---")
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return payload.get("data") or {}


# ── Negotiation ───────────────────────────────────────────────
section("NEGOTIATION")

key = f"demo-{uuid.uuid4().hex[:8]}"
req = out("Create request (2 TON ceiling)", call("POST", "/requests", {
    "requester_agent_id": BUYER,
    "service_query": "Q4 normalized market dataset",
    "max_price_nano": 2_000_000_000,
}, key=key))
out("Replay create request with same Idempotency-Key", call("POST", "/requests", {
    "requester_agent_id": BUYER,
    "service_query": "Q4 normalized market dataset",
    "max_price_nano": 2_000_000_000,
}, key=key))

out("Offer above ceiling (2.5 TON) — rejected", call("POST", "/offers", {
    "request_id": req["id"], "provider_agent_id": PROVIDER_A, "price_nano": 2_500_000_000,
}))
offer_a = out("Offer A (1.5 TON)", call("POST", "/offers", {
    "request_id": req["id"], "provider_agent_id": PROVIDER_A,
    "price_nano": 1_500_000_000, "terms": "JSON, delivered in <10s",
}))
offer_b = out("Offer B (1.8 TON)", call("POST", "/offers", {
    "request_id": req["id"], "provider_agent_id": PROVIDER_B, "price_nano": 1_800_000_000,
}))

out("Accept offer A", call("POST", f"/offers/{offer_a['id']}/accept"))
out("Accept offer B after A — conflict", call("POST", f"/offers/{offer_b['id']}/accept"))

# ── Deal ──────────────────────────────────────────────────────
section("DEAL")

deal = out("Create deal", call("POST", "/deals", {
    "request_id": req["id"], "offer_id": offer_a["id"],
}))
out("Execute before approval — conflict", call("POST", f"/deals/{deal['id']}/execute"))
out("Approve", call("POST", f"/deals/{deal['id']}/approve"))
out("Execute", call("POST", f"/deals/{deal['id']}/execute"))
out("Execute again — conflict", call("POST", f"/deals/{deal['id']}/execute"))
