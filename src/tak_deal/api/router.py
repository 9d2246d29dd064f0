"""Deal endpoints.

POST /deals                       — create from an accepted offer
GET  /deals                       — list (filter by status / request_id)
GET  /deals/{deal_id}             — detail
POST /deals/{deal_id}/approve     — awaiting_approval → approved
POST /deals/{deal_id}/execute     — approved → executed | failed (via adapter)
POST /deals/{deal_id}/cancel      — awaiting_approval → cancelled
DELETE /deals/{deal_id}          — delete a cancelled deal
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tak_common.database import get_db_session
from src.tak_common.enums import DealStatus
from src.tak_common.response import ApiResponse, scoped_success
from src.tak_deal.api.dependencies import get_deal_service
from src.tak_deal.application.schemas import CreateDealRequest
from src.tak_deal.application.service import DealApplicationService

router = APIRouter(prefix="/deals", tags=["deals"])


@router.post("", status_code=201)
async def create_deal(
    body: CreateDealRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.create_deal(db, body)
    return scoped_success(request, result.model_dump(), "Deal created. Awaiting approval.")


@router.get("")
async def list_deals(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
    status: DealStatus | None = Query(None),
    request_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=settings.LIST_LIMIT_MAX),
    cursor: str | None = Query(None, description="Pagination cursor (deal ID)"),
) -> ApiResponse:
    result = await service.list_deals(
        db, status.value if status else None, request_id, cursor, limit
    )
    return scoped_success(request, result.model_dump())


@router.get("/{deal_id}")
async def get_deal(
    deal_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.get_deal(db, deal_id)
    return scoped_success(request, result.model_dump())


@router.post("/{deal_id}/approve")
async def approve_deal(
    deal_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.approve(db, deal_id)
    return scoped_success(request, result.model_dump(), "Deal approved. Ready for execution.")


@router.post("/{deal_id}/execute")
async def execute_deal(
    deal_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.execute(db, deal_id)
    return scoped_success(
        request, result.model_dump(), f"Executed via {result.adapter}. No funds were held."
    )


@router.post("/{deal_id}/cancel")
async def cancel_deal(
    deal_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.cancel(db, deal_id)
    return scoped_success(request, result.model_dump(), "Deal cancelled")


@router.delete("/{deal_id}")
async def delete_deal(
    deal_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[DealApplicationService, Depends(get_deal_service)],
) -> ApiResponse:
    result = await service.delete(db, deal_id)
    return scoped_success(request, result.model_dump(), "Deal deleted")
