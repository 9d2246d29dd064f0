"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.tak_common.database import engine
from src.tak_common.errors import AppError, RequestValidationFailedError
from src.tak_common.redis_client import close_redis
from src.tak_common.response import error_response
from src.tak_deal.api.dependencies import get_deal_service
from src.tak_deal.api.router import router as deals_router
from src.tak_deal.application.service import DealApplicationService
from src.tak_gateway.middleware.idempotency import IdempotencyMiddleware
from src.tak_gateway.middleware.request_log import RequestLogMiddleware
from src.tak_idempotency.application.guard import build_idempotency_guard
from src.tak_negotiation.api.offers_router import router as offers_router
from src.tak_negotiation.api.requests_router import router as requests_router


VERSION = "0.1.0"
SCHEMA_VERSION = "tak/0.1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, build the idempotency guard. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    app.state.idempotency_guard = await build_idempotency_guard()
    yield
    # Shutdown
    await app.state.idempotency_guard.close()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


# Last added runs first: request logging wraps idempotency replays too
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(RequestLogMiddleware)


def _error_json(exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.data)
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(resp))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_json(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return _error_json(RequestValidationFailedError(errors))


app.include_router(requests_router, prefix="/api/v1")
app.include_router(offers_router, prefix="/api/v1")
app.include_router(deals_router, prefix="/api/v1")


@app.get("/")
async def info(
    deals: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> dict[str, Any]:
    return {
        "name": settings.APP_NAME,
        "version": VERSION,
        "schema_version": SCHEMA_VERSION,
        "positioning": "Never holds funds. Execution is delegated to the execution adapter.",
        "pricing_unit": "nanoTON (1 TON = 1,000,000,000 nanoTON, integers only)",
        "deal_state_machine": "awaiting_approval → approved → executed | failed; "
        "awaiting_approval → cancelled",
        "execution_adapter": deals.adapter_name,
        "idempotency": "Idempotency-Key header or idempotency_key body field",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION}
