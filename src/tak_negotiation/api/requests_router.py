"""Request endpoints.

POST /requests                 — open a request under a price ceiling
GET  /requests                 — list with cursor pagination
GET  /requests/{request_id}    — detail
POST /requests/{request_id}/cancel — cancel an open request
DELETE /requests/{request_id} — delete a request with no pending or accepted offers
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tak_common.database import get_db_session
from src.tak_common.enums import RequestStatus
from src.tak_common.response import ApiResponse, scoped_success
from src.tak_negotiation.api.dependencies import get_negotiation_service
from src.tak_negotiation.application.schemas import CreateRequestRequest
from src.tak_negotiation.application.service import NegotiationApplicationService

router = APIRouter(prefix="/requests", tags=["requests"])


@router.post("", status_code=201)
async def create_request(
    body: CreateRequestRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.create_request(db, body)
    return scoped_success(request, result.model_dump())


@router.get("")
async def list_requests(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
    status: RequestStatus | None = Query(None),
    requester_agent_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=settings.LIST_LIMIT_MAX),
    cursor: str | None = Query(None, description="Pagination cursor (request ID)"),
) -> ApiResponse:
    result = await service.list_requests(
        db, status.value if status else None, requester_agent_id, cursor, limit
    )
    return scoped_success(request, result.model_dump())


@router.get("/{request_id}")
async def get_request(
    request_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.get_request(db, request_id)
    return scoped_success(request, result.model_dump())


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.cancel_request(db, request_id)
    return scoped_success(request, result.model_dump(), "Request cancelled")


@router.delete("/{request_id}")
async def delete_request(
    request_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[NegotiationApplicationService, Depends(get_negotiation_service)],
) -> ApiResponse:
    result = await service.delete_request(db, request_id)
    return scoped_success(request, result.model_dump(), "Request deleted")
