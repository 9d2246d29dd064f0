"""FastAPI dependency providing the process-wide NegotiationApplicationService.

Tests replace it through ``app.dependency_overrides[get_negotiation_service]``.
"""

from src.tak_negotiation.application.service import NegotiationApplicationService

_service: NegotiationApplicationService | None = None


def get_negotiation_service() -> NegotiationApplicationService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = NegotiationApplicationService()
    return _service
