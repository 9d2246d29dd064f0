# src/tak_deal/domain/adapter.py
"""ExecutionAdapter Protocol — the settlement capability the deal lifecycle depends on.

An adapter receives the sealed DealSnapshot and returns an opaque receipt
string. It is called at most once per successful execute call; the lifecycle
never retries. Any exception it raises is treated as a settlement failure and
moves the deal to ``failed``. Raise ExecutionError for a clean message.

Implementations are injected into DealApplicationService; see
src/tak_deal/infrastructure/adapters.py for the mock and the registry.
"""
from typing import Protocol

from src.tak_deal.domain.models import DealSnapshot


class ExecutionError(Exception):
    """Raised by an adapter when the backend rejects or cannot settle a payment."""


class ExecutionAdapter(Protocol):
    name: str

    async def execute_payment(self, snapshot: DealSnapshot) -> str: ...
