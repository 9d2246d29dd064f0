"""Deal domain model and state machine — pure dataclasses, no SQLAlchemy dependency.

State machine:
  awaiting_approval → approved → executed
  approved          → failed
  awaiting_approval → cancelled

executed, failed and cancelled are terminal.
"""
from dataclasses import dataclass
from datetime import datetime

from src.tak_common.enums import DealStatus

LEGAL_TRANSITIONS: dict[DealStatus, frozenset[DealStatus]] = {
    DealStatus.AWAITING_APPROVAL: frozenset({DealStatus.APPROVED, DealStatus.CANCELLED}),
    DealStatus.APPROVED: frozenset({DealStatus.EXECUTED, DealStatus.FAILED}),
    DealStatus.EXECUTED: frozenset(),
    DealStatus.FAILED: frozenset(),
    DealStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in LEGAL_TRANSITIONS.items() if not targets)


def can_transition(current: str, target: DealStatus) -> bool:
    return target in LEGAL_TRANSITIONS.get(DealStatus(current), frozenset())


def required_source(target: DealStatus) -> DealStatus:
    """The single state from which ``target`` may be reached."""
    for source, targets in LEGAL_TRANSITIONS.items():
        if target in targets:
            return source
    raise ValueError(f"{target.value} is not reachable by any transition")


@dataclass(frozen=True)
class DealSnapshot:
    """Sealed copy of the parties and amount handed to the execution adapter."""

    deal_id: str
    payer_agent_id: str
    payee_agent_id: str
    amount_nano: int


@dataclass
class Deal:
    id: str
    request_id: str
    offer_id: str
    # Sealed at creation; never recomputed from the offer or request
    payer_agent_id: str
    payee_agent_id: str
    amount_nano: int
    status: str = DealStatus.AWAITING_APPROVAL.value
    approved_at: datetime | None = None
    executed_at: datetime | None = None
    execution_receipt: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return DealStatus(self.status) in TERMINAL_STATUSES

    def snapshot(self) -> DealSnapshot:
        return DealSnapshot(
            deal_id=self.id,
            payer_agent_id=self.payer_agent_id,
            payee_agent_id=self.payee_agent_id,
            amount_nano=self.amount_nano,
        )
