"""Negotiation domain models — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime


@dataclass
class Request:
    id: str
    requester_agent_id: str
    service_query: str
    max_price_nano: int  # ceiling, > 0
    status: str = "open"  # open / closed / cancelled
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def admits_price(self, price_nano: int) -> bool:
        return price_nano <= self.max_price_nano


@dataclass
class Offer:
    id: str
    request_id: str
    provider_agent_id: str
    price_nano: int  # > 0, <= request.max_price_nano
    terms: str | None = None
    status: str = "pending"  # pending / accepted / rejected
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


@dataclass
class AcceptanceResult:
    """Outcome of the accept-offer unit of work."""

    offer: Offer
    request: Request
    auto_rejected_count: int
