# src/tak_deal/application/service.py
"""DealApplicationService — creation, approval gate, execution and cancellation.

Every status change goes through DealRepository.transition(), a
compare-and-set on the current status, so each legal edge is taken at most
once even under concurrent calls. Execution is the only step that waits on
an external system: the deal row stays locked (FOR UPDATE) for the duration
of the adapter call so a concurrent execute blocks and then sees a terminal
status instead of settling twice.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tak_common.datetime_utils import utc_now
from src.tak_common.enums import DealStatus, IdPrefix, OfferStatus
from src.tak_common.errors import (
    AdapterFailureError,
    DealAlreadyExistsError,
    DealNotDeletableError,
    DealNotFoundError,
    IllegalDealTransitionError,
    InternalError,
    OfferNotAcceptedError,
    OfferNotFoundError,
    OfferRequestMismatchError,
    RequestNotFoundError,
)
from src.tak_common.id_generator import generate_id
from src.tak_deal.application.schemas import (
    CreateDealRequest,
    DealListResponse,
    DealResponse,
    DeleteDealResponse,
    ExecuteDealResponse,
)
from src.tak_deal.domain.adapter import ExecutionAdapter, ExecutionError
from src.tak_deal.domain.models import Deal, DealSnapshot, can_transition, required_source
from src.tak_deal.domain.repository import DealRepositoryProtocol
from src.tak_deal.infrastructure.adapters import build_execution_adapter
from src.tak_deal.infrastructure.persistence import DealRepository
from src.tak_negotiation.domain.repository import NegotiationRepositoryProtocol
from src.tak_negotiation.infrastructure.persistence import NegotiationRepository

logger = logging.getLogger(__name__)


class DealApplicationService:
    def __init__(
        self,
        repo: DealRepositoryProtocol | None = None,
        negotiation_repo: NegotiationRepositoryProtocol | None = None,
        adapter: ExecutionAdapter | None = None,
        execution_timeout_s: float | None = None,
    ) -> None:
        self._repo: DealRepositoryProtocol = repo or DealRepository()
        self._negotiation: NegotiationRepositoryProtocol = (
            negotiation_repo or NegotiationRepository()
        )
        self._adapter: ExecutionAdapter = adapter or build_execution_adapter()
        self._timeout_s = (
            execution_timeout_s
            if execution_timeout_s is not None
            else settings.EXECUTION_TIMEOUT_SECONDS
        )

    @property
    def adapter_name(self) -> str:
        return self._adapter.name

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_deal(self, db: AsyncSession, req: CreateDealRequest) -> DealResponse:
        """Freeze an accepted offer into a deal awaiting approval.

        payer, payee and amount are copied now and never recomputed.
        """
        try:
            offer = await self._negotiation.get_offer(db, req.offer_id)
            if offer is None:
                raise OfferNotFoundError(req.offer_id)
            request = await self._negotiation.get_request(db, req.request_id)
            if request is None:
                raise RequestNotFoundError(req.request_id)
            if offer.status != OfferStatus.ACCEPTED.value:
                raise OfferNotAcceptedError(offer.id, offer.status)
            if offer.request_id != request.id:
                raise OfferRequestMismatchError(offer.id, request.id)

            existing = await self._repo.get_deal_by_offer(db, offer.id)
            if existing is not None:
                raise DealAlreadyExistsError(offer.id, existing.id)

            deal = await self._repo.insert_deal(
                db,
                Deal(
                    id=generate_id(IdPrefix.DEAL),
                    request_id=request.id,
                    offer_id=offer.id,
                    payer_agent_id=request.requester_agent_id,
                    payee_agent_id=offer.provider_agent_id,
                    amount_nano=offer.price_nano,
                    status=DealStatus.AWAITING_APPROVAL.value,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Deal %s created from offer %s: %s → %s, amount=%d",
            deal.id, deal.offer_id, deal.payer_agent_id, deal.payee_agent_id, deal.amount_nano,
        )
        return DealResponse.from_domain(deal)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def approve(self, db: AsyncSession, deal_id: str) -> DealResponse:
        deal = await self._transition(
            db, deal_id, DealStatus.APPROVED, approved_at=utc_now()
        )
        logger.info("Deal %s approved", deal_id)
        return DealResponse.from_domain(deal)

    async def cancel(self, db: AsyncSession, deal_id: str) -> DealResponse:
        deal = await self._transition(db, deal_id, DealStatus.CANCELLED)
        logger.info("Deal %s cancelled", deal_id)
        return DealResponse.from_domain(deal)

    async def execute(self, db: AsyncSession, deal_id: str) -> ExecuteDealResponse:
        """Settle an approved deal through the execution adapter.

        Adapter success → executed (receipt, executed_at).
        Adapter failure → failed (terminal), then AdapterFailureError is raised.
        """
        try:
            deal = await self._repo.get_deal_for_update(db, deal_id)
            if deal is None:
                raise DealNotFoundError(deal_id)
            if not can_transition(deal.status, DealStatus.EXECUTED):
                raise IllegalDealTransitionError(
                    deal_id, deal.status, DealStatus.EXECUTED.value, DealStatus.APPROVED.value
                )

            try:
                receipt = await self._settle(deal.snapshot())
            except Exception as exc:  # any adapter error is a settlement failure
                reason = str(exc) or type(exc).__name__
                logger.warning("Deal %s execution failed via %s: %s", deal_id, self.adapter_name, reason)
                failed = await self._repo.transition(
                    db,
                    deal_id,
                    expected_status=DealStatus.APPROVED.value,
                    new_status=DealStatus.FAILED.value,
                    failure_reason=reason,
                )
                if failed is None:
                    raise InternalError(f"Deal {deal_id} changed status while locked") from exc
                await db.commit()
                raise AdapterFailureError(
                    deal_id, reason, DealResponse.from_domain(failed).model_dump()
                ) from exc

            executed = await self._repo.transition(
                db,
                deal_id,
                expected_status=DealStatus.APPROVED.value,
                new_status=DealStatus.EXECUTED.value,
                executed_at=utc_now(),
                execution_receipt=receipt,
            )
            if executed is None:
                raise InternalError(f"Deal {deal_id} changed status while locked")
            await db.commit()
        except AdapterFailureError:
            raise
        except Exception:
            await db.rollback()
            raise
        logger.info("Deal %s executed via %s, receipt=%s", deal_id, self.adapter_name, receipt)
        return ExecuteDealResponse(
            deal=DealResponse.from_domain(executed), adapter=self.adapter_name
        )

    async def delete(self, db: AsyncSession, deal_id: str) -> DeleteDealResponse:
        """Remove a cancelled deal. Deals in any other status are kept."""
        try:
            deleted = await self._repo.delete_deal(
                db, deal_id, expected_status=DealStatus.CANCELLED.value
            )
            if not deleted:
                current = await self._repo.get_deal(db, deal_id)
                if current is None:
                    raise DealNotFoundError(deal_id)
                raise DealNotDeletableError(deal_id, current.status)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Deal %s deleted", deal_id)
        return DeleteDealResponse(deleted=deal_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_deal(self, db: AsyncSession, deal_id: str) -> DealResponse:
        deal = await self._repo.get_deal(db, deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return DealResponse.from_domain(deal)

    async def list_deals(
        self,
        db: AsyncSession,
        status: str | None,
        request_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> DealListResponse:
        deals = await self._repo.list_deals(db, status, request_id, cursor, limit + 1)
        has_more = len(deals) > limit
        page = deals[:limit]
        return DealListResponse(
            items=[DealResponse.from_domain(d) for d in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transition(
        self, db: AsyncSession, deal_id: str, target: DealStatus, **fields: object
    ) -> Deal:
        source = required_source(target)
        try:
            deal = await self._repo.transition(
                db,
                deal_id,
                expected_status=source.value,
                new_status=target.value,
                **fields,  # type: ignore[arg-type]
            )
            if deal is None:
                current = await self._repo.get_deal(db, deal_id)
                if current is None:
                    raise DealNotFoundError(deal_id)
                raise IllegalDealTransitionError(
                    deal_id, current.status, target.value, source.value
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return deal

    async def _settle(self, snapshot: DealSnapshot) -> str:
        receipt = await asyncio.wait_for(
            self._adapter.execute_payment(snapshot), timeout=self._timeout_s
        )
        if not isinstance(receipt, str) or not receipt:
            raise ExecutionError(f"{self.adapter_name} returned an empty receipt")
        return receipt
