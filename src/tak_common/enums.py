"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class AgentStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class RequestStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DealStatus(str, Enum):
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class IdPrefix(str, Enum):
    """Entity-type tags prepended to every business ID."""
    REQUEST = "req"
    OFFER = "off"
    DEAL = "deal"
