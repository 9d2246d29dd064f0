"""Offer endpoints.

POST  /offers                     — submit an offer on an open request
GET   /offers                     — list (filter by request_id / status)
GET   /offers/{offer_id}          — detail
PATCH /offers/{offer_id}          — revise price/terms of a pending offer
POST  /offers/{offer_id}/accept   — accept; rejects competitors, closes request
POST  /offers/{offer_id}/reject   — reject (idempotent)
DELETE /offers/{offer_id}         — delete a pending or rejected offer
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tak_common.database import get_db_session
from src.tak_common.enums import OfferStatus
from src.tak_common.response import ApiResponse, scoped_success
from src.tak_negotiation.api.dependencies import get_negotiation_service
from src.tak_negotiation.application.schemas import ReviseOfferRequest, SubmitOfferRequest
from src.tak_negotiation.application.service import NegotiationApplicationService

router = APIRouter(prefix="/offers", tags=["offers"])


@router.post("", status_code=201)
async def submit_offer(
    body: SubmitOfferRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.submit_offer(db, body)
    return scoped_success(request, result.model_dump())


@router.get("")
async def list_offers(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
    request_id: str | None = Query(None),
    status: OfferStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=settings.LIST_LIMIT_MAX),
    cursor: str | None = Query(None, description="Pagination cursor (offer ID)"),
) -> ApiResponse:
    result = await service.list_offers(
        db, request_id, status.value if status else None, cursor, limit
    )
    return scoped_success(request, result.model_dump())


@router.get("/{offer_id}")
async def get_offer(
    offer_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.get_offer(db, offer_id)
    return scoped_success(request, result.model_dump())


@router.patch("/{offer_id}")
async def revise_offer(
    offer_id: str,
    body: ReviseOfferRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.revise_offer(db, offer_id, body)
    return scoped_success(request, result.model_dump())


@router.post("/{offer_id}/accept")
async def accept_offer(
    offer_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.accept_offer(db, offer_id)
    return scoped_success(request, result.model_dump(), "Offer accepted")


@router.post("/{offer_id}/reject")
async def reject_offer(
    offer_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.reject_offer(db, offer_id)
    return scoped_success(request, result.model_dump(), "Offer rejected")


@router.delete("/{offer_id}")
async def delete_offer(
    offer_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.delete_offer(db, offer_id)
    return scoped_success(request, result.model_dump(), "Offer deleted")
