"""FastAPI dependency providing the process-wide DealApplicationService.

The execution adapter is chosen once, on first use, from settings.EXECUTION_ADAPTER.
"""

from src.tak_deal.application.service import DealApplicationService

_service: DealApplicationService | None = None


def get_deal_service() -> DealApplicationService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = DealApplicationService()
    return _service
