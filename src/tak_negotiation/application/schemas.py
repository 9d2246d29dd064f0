# src/tak_negotiation/application/schemas.py
"""Pydantic schemas for the negotiation API.

Amounts are StrictInt so that JSON floats and numeric strings are rejected
at the edge; positivity and the ceiling are enforced by the service.
"""
from pydantic import BaseModel, StrictInt

from src.tak_common.datetime_utils import iso_or_none
from src.tak_common.nano import nano_to_display
from src.tak_negotiation.domain.models import AcceptanceResult, Offer, Request

# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class CreateRequestRequest(BaseModel):
    requester_agent_id: str
    service_query: str
    max_price_nano: StrictInt


class SubmitOfferRequest(BaseModel):
    request_id: str
    provider_agent_id: str
    price_nano: StrictInt
    terms: str | None = None


class ReviseOfferRequest(BaseModel):
    price_nano: StrictInt | None = None
    terms: str | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    id: str
    requester_agent_id: str
    requester_name: str | None = None
    service_query: str
    max_price_nano: int
    max_price_display: str
    status: str
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, r: Request, requester_name: str | None = None) -> "RequestResponse":
        return cls(
            id=r.id,
            requester_agent_id=r.requester_agent_id,
            requester_name=requester_name,
            service_query=r.service_query,
            max_price_nano=r.max_price_nano,
            max_price_display=nano_to_display(r.max_price_nano),
            status=r.status,
            created_at=iso_or_none(r.created_at),
            updated_at=iso_or_none(r.updated_at),
        )


class OfferResponse(BaseModel):
    id: str
    request_id: str
    provider_agent_id: str
    provider_name: str | None = None
    price_nano: int
    price_display: str
    terms: str | None
    status: str
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, o: Offer, provider_name: str | None = None) -> "OfferResponse":
        return cls(
            id=o.id,
            request_id=o.request_id,
            provider_agent_id=o.provider_agent_id,
            provider_name=provider_name,
            price_nano=o.price_nano,
            price_display=nano_to_display(o.price_nano),
            terms=o.terms,
            status=o.status,
            created_at=iso_or_none(o.created_at),
            updated_at=iso_or_none(o.updated_at),
        )


class AcceptOfferResponse(BaseModel):
    offer: OfferResponse
    request_status: str
    other_offers_auto_rejected: int

    @classmethod
    def from_result(cls, result: AcceptanceResult) -> "AcceptOfferResponse":
        return cls(
            offer=OfferResponse.from_domain(result.offer),
            request_status=result.request.status,
            other_offers_auto_rejected=result.auto_rejected_count,
        )


class CancelRequestResponse(BaseModel):
    request: RequestResponse
    offers_rejected: int


class DeleteRequestResponse(BaseModel):
    deleted: str
    offers_deleted: int


class DeleteOfferResponse(BaseModel):
    deleted: str


class RequestListResponse(BaseModel):
    items: list[RequestResponse]
    next_cursor: str | None
    has_more: bool


class OfferListResponse(BaseModel):
    items: list[OfferResponse]
    next_cursor: str | None
    has_more: bool
