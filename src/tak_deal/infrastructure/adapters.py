"""Execution adapter implementations and the name → factory registry.

MockExecutionAdapter is the development stand-in for a real settlement
backend: it waits a configurable latency and returns a fabricated receipt.
It never moves funds.

To add a real backend, implement the ExecutionAdapter Protocol and register
a factory under a new name; set EXECUTION_ADAPTER to that name in .env.
"""
import asyncio
import logging
import uuid
from collections.abc import Callable

from config.settings import settings
from src.tak_common.errors import UnknownExecutionAdapterError
from src.tak_deal.domain.adapter import ExecutionAdapter
from src.tak_deal.domain.models import DealSnapshot

logger = logging.getLogger(__name__)


class MockExecutionAdapter:
    """Returns ``mcp_receipt_<16 hex>`` after a short simulated latency."""

    name = "MockExecutionAdapter"

    def __init__(self, latency_ms: int = 120) -> None:
        self._latency_s = max(latency_ms, 0) / 1000

    async def execute_payment(self, snapshot: DealSnapshot) -> str:
        if self._latency_s:
            await asyncio.sleep(self._latency_s)
        receipt = f"mcp_receipt_{uuid.uuid4().hex[:16]}"
        logger.info(
            "[%s] execute_payment(deal=%s, amount=%d) → %s",
            self.name, snapshot.deal_id, snapshot.amount_nano, receipt,
        )
        return receipt


_ADAPTER_FACTORIES: dict[str, Callable[[], ExecutionAdapter]] = {
    "mock": lambda: MockExecutionAdapter(latency_ms=settings.MOCK_EXECUTION_LATENCY_MS),
}


def register_execution_adapter(name: str, factory: Callable[[], ExecutionAdapter]) -> None:
    _ADAPTER_FACTORIES[name] = factory


def build_execution_adapter(name: str | None = None) -> ExecutionAdapter:
    """Instantiate the adapter registered under ``name`` (default: settings.EXECUTION_ADAPTER)."""
    key = name or settings.EXECUTION_ADAPTER
    factory = _ADAPTER_FACTORIES.get(key)
    if factory is None:
        raise UnknownExecutionAdapterError(key)
    adapter = factory()
    logger.info("Execution adapter: %s", adapter.name)
    return adapter
