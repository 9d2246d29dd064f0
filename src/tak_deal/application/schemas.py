# src/tak_deal/application/schemas.py
from pydantic import BaseModel

from src.tak_common.datetime_utils import iso_or_none
from src.tak_common.nano import nano_to_display
from src.tak_deal.domain.models import Deal


class CreateDealRequest(BaseModel):
    request_id: str
    offer_id: str


class DealResponse(BaseModel):
    id: str
    request_id: str
    offer_id: str
    payer_agent_id: str
    payee_agent_id: str
    amount_nano: int
    amount_display: str
    status: str
    approved_at: str | None
    executed_at: str | None
    execution_receipt: str | None
    failure_reason: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, d: Deal) -> "DealResponse":
        return cls(
            id=d.id,
            request_id=d.request_id,
            offer_id=d.offer_id,
            payer_agent_id=d.payer_agent_id,
            payee_agent_id=d.payee_agent_id,
            amount_nano=d.amount_nano,
            amount_display=nano_to_display(d.amount_nano),
            status=d.status,
            approved_at=iso_or_none(d.approved_at),
            executed_at=iso_or_none(d.executed_at),
            execution_receipt=d.execution_receipt,
            failure_reason=d.failure_reason,
            created_at=iso_or_none(d.created_at),
            updated_at=iso_or_none(d.updated_at),
        )


class ExecuteDealResponse(BaseModel):
    deal: DealResponse
    adapter: str


class DealListResponse(BaseModel):
    items: list[DealResponse]
    next_cursor: str | None
    has_more: bool


class DeleteDealResponse(BaseModel):
    deleted: str
