"""Request logging middleware.

Logs every HTTP request with method, path, status code, latency and a short
request ID for correlation. The request_id is injected into request.state so
routers can put it in the ApiResponse envelope, and echoed back in the
``X-Request-ID`` response header. Responses served from the idempotency
cache are tagged ``replay``; 5xx responses (adapter failures included) are
logged at WARNING.

Log format:
    INFO [POST] /api/v1/offers/off_123/accept → 200 (23ms) rid_a1b2c3d4e5f6
    INFO [POST] /api/v1/requests → 201 (1ms) rid_0f9e8d7c6b5a replay
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.tak_gateway.middleware.idempotency import REPLAY_HEADER

logger = logging.getLogger("tak.request")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"rid_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            " replay" if response.headers.get(REPLAY_HEADER) else "",
        )
        return response
