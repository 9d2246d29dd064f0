"""Idempotency middleware.

Mutating calls (POST/PUT/PATCH/DELETE) may carry a client-generated key in
the ``Idempotency-Key`` header or in the JSON body field ``idempotency_key``.

  hit         → the cached status and body bytes are returned verbatim; the
                route, its validation and all business logic are skipped.
  miss        → the key is claimed, the route runs, and a 2xx response
                replaces the claim for the retention window. Any other
                outcome frees the claim.
  in progress → another call holds the claim: 409 with code 9004.

The guard is read from ``app.state.idempotency_guard`` (set at startup).
Without a guard, or without a key, requests pass straight through.
Store outages degrade to un-deduplicated processing, never to a failed call.
"""

import json
import logging

from fastapi.encoders import jsonable_encoder
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.tak_common.errors import IdempotencyKeyInUseError
from src.tak_common.response import error_response
from src.tak_idempotency.application.guard import IdempotencyGuard

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "idempotency-key"
IDEMPOTENCY_BODY_FIELD = "idempotency_key"
REPLAY_HEADER = "idempotent-replayed"

_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


async def _extract_key(request: Request) -> str | None:
    key = request.headers.get(IDEMPOTENCY_HEADER)
    if key:
        return key.strip() or None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    body = await request.body()
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None  # malformed JSON is reported by the route's validation
    if isinstance(payload, dict):
        value = payload.get(IDEMPOTENCY_BODY_FIELD)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _in_progress(request: Request, key: str) -> JSONResponse:
    exc = IdempotencyKeyInUseError(key)
    envelope = error_response(exc.code, exc.message, exc.data)
    envelope.request_id = getattr(request.state, "request_id", envelope.request_id)
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(envelope))


async def _release_quietly(guard: IdempotencyGuard, key: str) -> None:
    try:
        await guard.release(key)
    except Exception:
        logger.exception("Idempotency release failed for key=%s", key)


class IdempotencyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        guard: IdempotencyGuard | None = getattr(request.app.state, "idempotency_guard", None)
        if guard is None or request.method not in _MUTATING_METHODS:
            return await call_next(request)

        key = await _extract_key(request)
        if key is None:
            return await call_next(request)

        try:
            cached = await guard.lookup(key)
            claimed = cached is None and await guard.claim(key)
            if cached is None and not claimed:
                # The holder may have finished between lookup and claim
                cached = await guard.lookup(key)
        except Exception:
            logger.exception("Idempotency lookup failed for key=%s; processing normally", key)
            return await call_next(request)

        if cached is not None:
            return Response(
                content=cached.body,
                status_code=cached.status_code,
                media_type=cached.media_type,
                headers={REPLAY_HEADER: "true"},
            )
        if not claimed:
            logger.info("Idempotency key in progress: key=%s", key)
            return _in_progress(request, key)

        try:
            response = await call_next(request)
            body = b"".join([chunk async for chunk in response.body_iterator])  # type: ignore[attr-defined]
        except Exception:
            await _release_quietly(guard, key)
            raise
        media_type = response.headers.get("content-type", "application/json")

        try:
            await guard.record(key, response.status_code, body, media_type)
        except Exception:
            logger.exception("Idempotency record failed for key=%s", key)
            await _release_quietly(guard, key)

        rebuilt = Response(content=body, status_code=response.status_code)
        rebuilt.raw_headers = list(response.raw_headers)
        return rebuilt
