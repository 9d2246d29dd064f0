# src/tak_negotiation/application/service.py
"""NegotiationApplicationService — requests, offers and the accept transaction.

Mutating methods own their transaction: they commit on success and roll back
on any exception, so partial writes are never observable. Row locks are
always taken request-first, then offer, so concurrent accept/submit/cancel
calls on the same request serialize instead of deadlocking.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.tak_agent.domain.repository import AgentDirectoryProtocol
from src.tak_agent.infrastructure.persistence import AgentDirectory
from src.tak_common.enums import IdPrefix, OfferStatus, RequestStatus
from src.tak_common.errors import (
    EmptyOfferRevisionError,
    InvalidServiceQueryError,
    OfferAlreadyAcceptedError,
    OfferNotFoundError,
    OfferNotPendingError,
    PriceExceedsCeilingError,
    ProviderNotFoundError,
    RequestNotFoundError,
    RequestInUseError,
    RequestNotOpenError,
    UnknownRequesterError,
)
from src.tak_common.id_generator import generate_id
from src.tak_common.nano import validate_positive_nano
from src.tak_negotiation.application.schemas import (
    AcceptOfferResponse,
    CancelRequestResponse,
    CreateRequestRequest,
    DeleteOfferResponse,
    DeleteRequestResponse,
    OfferListResponse,
    OfferResponse,
    RequestListResponse,
    RequestResponse,
    ReviseOfferRequest,
    SubmitOfferRequest,
)
from src.tak_negotiation.domain.models import AcceptanceResult, Offer, Request
from src.tak_negotiation.domain.repository import NegotiationRepositoryProtocol
from src.tak_negotiation.infrastructure.persistence import NegotiationRepository

logger = logging.getLogger(__name__)


class NegotiationApplicationService:
    def __init__(
        self,
        repo: NegotiationRepositoryProtocol | None = None,
        agents: AgentDirectoryProtocol | None = None,
    ) -> None:
        self._repo: NegotiationRepositoryProtocol = repo or NegotiationRepository()
        self._agents: AgentDirectoryProtocol = agents or AgentDirectory()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def create_request(
        self, db: AsyncSession, req: CreateRequestRequest
    ) -> RequestResponse:
        max_price = validate_positive_nano(req.max_price_nano, "max_price_nano")
        if not req.service_query or not req.service_query.strip():
            raise InvalidServiceQueryError()
        try:
            if not await self._agents.agent_exists(db, req.requester_agent_id):
                raise UnknownRequesterError(req.requester_agent_id)
            request = await self._repo.insert_request(
                db,
                Request(
                    id=generate_id(IdPrefix.REQUEST),
                    requester_agent_id=req.requester_agent_id,
                    service_query=req.service_query,
                    max_price_nano=max_price,
                    status=RequestStatus.OPEN.value,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Request %s opened by %s (ceiling=%d)",
            request.id, request.requester_agent_id, request.max_price_nano,
        )
        return RequestResponse.from_domain(request)

    async def get_request(self, db: AsyncSession, request_id: str) -> RequestResponse:
        request = await self._repo.get_request(db, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        names = await self._agents.agent_names(db, [request.requester_agent_id])
        return RequestResponse.from_domain(request, names.get(request.requester_agent_id))

    async def list_requests(
        self,
        db: AsyncSession,
        status: str | None,
        requester_agent_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> RequestListResponse:
        # Fetch limit+1 to detect has_more without COUNT(*)
        requests = await self._repo.list_requests(
            db, status, requester_agent_id, cursor, limit + 1
        )
        has_more = len(requests) > limit
        page = requests[:limit]
        names = await self._agents.agent_names(db, (r.requester_agent_id for r in page))
        return RequestListResponse(
            items=[RequestResponse.from_domain(r, names.get(r.requester_agent_id)) for r in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    async def cancel_request(
        self, db: AsyncSession, request_id: str
    ) -> CancelRequestResponse:
        """Cancel an open request and reject its pending offers.

        Only open requests can be cancelled. Acceptance closes a request before
        any deal can reference it, so a request with a deal is never cancelled.
        """
        try:
            request = await self._repo.get_request_for_update(db, request_id)
            if request is None:
                raise RequestNotFoundError(request_id)
            if not request.is_open:
                raise RequestNotOpenError(request_id, request.status)
            rejected = await self._repo.reject_pending_offers(db, request_id, None)
            request = await self._repo.set_request_status(
                db, request_id, RequestStatus.CANCELLED.value
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Request %s cancelled (%d pending offers rejected)", request_id, rejected)
        return CancelRequestResponse(
            request=RequestResponse.from_domain(request), offers_rejected=rejected
        )

    async def delete_request(
        self, db: AsyncSession, request_id: str
    ) -> DeleteRequestResponse:
        """Delete a request together with its rejected offers.

        Refused while any offer is pending or accepted. Deals are only created
        from accepted offers, so a request referenced by a deal is never deleted.
        """
        try:
            request = await self._repo.get_request_for_update(db, request_id)
            if request is None:
                raise RequestNotFoundError(request_id)
            live = await self._repo.count_live_offers(db, request_id)
            if live:
                raise RequestInUseError(request_id, request.status, live)
            offers_deleted = await self._repo.delete_request(db, request_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Request %s deleted (%d offers removed)", request_id, offers_deleted)
        return DeleteRequestResponse(deleted=request_id, offers_deleted=offers_deleted)

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    async def submit_offer(self, db: AsyncSession, req: SubmitOfferRequest) -> OfferResponse:
        price = validate_positive_nano(req.price_nano, "price_nano")
        try:
            request = await self._repo.get_request_for_update(db, req.request_id)
            if request is None:
                raise RequestNotFoundError(req.request_id)
            if not await self._agents.agent_exists(db, req.provider_agent_id):
                raise ProviderNotFoundError(req.provider_agent_id)
            if not request.is_open:
                raise RequestNotOpenError(request.id, request.status)
            if not request.admits_price(price):
                raise PriceExceedsCeilingError(price, request.max_price_nano)
            offer = await self._repo.insert_offer(
                db,
                Offer(
                    id=generate_id(IdPrefix.OFFER),
                    request_id=request.id,
                    provider_agent_id=req.provider_agent_id,
                    price_nano=price,
                    terms=req.terms,
                    status=OfferStatus.PENDING.value,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Offer %s submitted on %s by %s (price=%d)",
            offer.id, offer.request_id, offer.provider_agent_id, offer.price_nano,
        )
        return OfferResponse.from_domain(offer)

    async def get_offer(self, db: AsyncSession, offer_id: str) -> OfferResponse:
        offer = await self._repo.get_offer(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        names = await self._agents.agent_names(db, [offer.provider_agent_id])
        return OfferResponse.from_domain(offer, names.get(offer.provider_agent_id))

    async def list_offers(
        self,
        db: AsyncSession,
        request_id: str | None,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> OfferListResponse:
        offers = await self._repo.list_offers(db, request_id, status, cursor, limit + 1)
        has_more = len(offers) > limit
        page = offers[:limit]
        names = await self._agents.agent_names(db, (o.provider_agent_id for o in page))
        return OfferListResponse(
            items=[OfferResponse.from_domain(o, names.get(o.provider_agent_id)) for o in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    async def accept_offer(self, db: AsyncSession, offer_id: str) -> AcceptOfferResponse:
        """Accept one offer, reject its pending siblings and close the request.

        All three writes commit together or not at all. A concurrent acceptance
        on the same request blocks on the request row lock and then observes
        the closed request or non-pending offer, failing with a conflict.
        """
        try:
            offer = await self._repo.get_offer(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            request = await self._repo.get_request_for_update(db, offer.request_id)
            if request is None:
                raise RequestNotFoundError(offer.request_id)
            # Re-read under lock: the unlocked read above may be stale
            offer = await self._repo.get_offer_for_update(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if not offer.is_pending:
                raise OfferNotPendingError(offer_id, offer.status)
            if not request.is_open:
                raise RequestNotOpenError(request.id, request.status)

            accepted = await self._repo.set_offer_status(
                db, offer_id, OfferStatus.ACCEPTED.value
            )
            rejected = await self._repo.reject_pending_offers(db, request.id, offer_id)
            closed = await self._repo.set_request_status(
                db, request.id, RequestStatus.CLOSED.value
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Offer %s accepted; request %s closed, %d competing offers rejected",
            offer_id, request.id, rejected,
        )
        return AcceptOfferResponse.from_result(
            AcceptanceResult(offer=accepted, request=closed, auto_rejected_count=rejected)
        )

    async def reject_offer(self, db: AsyncSession, offer_id: str) -> OfferResponse:
        try:
            offer = await self._repo.get_offer(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            # Lock order: request, then offer
            await self._repo.get_request_for_update(db, offer.request_id)
            offer = await self._repo.get_offer_for_update(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if offer.status == OfferStatus.ACCEPTED.value:
                raise OfferAlreadyAcceptedError(offer_id)
            if offer.status == OfferStatus.PENDING.value:
                offer = await self._repo.set_offer_status(
                    db, offer_id, OfferStatus.REJECTED.value
                )
                logger.info("Offer %s rejected", offer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OfferResponse.from_domain(offer)

    async def revise_offer(
        self, db: AsyncSession, offer_id: str, req: ReviseOfferRequest
    ) -> OfferResponse:
        """Change price and/or terms of a pending offer on an open request."""
        if req.price_nano is None and req.terms is None:
            raise EmptyOfferRevisionError()
        price = (
            validate_positive_nano(req.price_nano, "price_nano")
            if req.price_nano is not None
            else None
        )
        try:
            offer = await self._repo.get_offer(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            request = await self._repo.get_request_for_update(db, offer.request_id)
            if request is None:
                raise RequestNotFoundError(offer.request_id)
            offer = await self._repo.get_offer_for_update(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if not offer.is_pending:
                raise OfferNotPendingError(offer_id, offer.status)
            if not request.is_open:
                raise RequestNotOpenError(request.id, request.status)
            if price is not None and not request.admits_price(price):
                raise PriceExceedsCeilingError(price, request.max_price_nano)
            offer = await self._repo.update_offer_terms(db, offer_id, price, req.terms)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Offer %s revised (price=%d)", offer_id, offer.price_nano)
        return OfferResponse.from_domain(offer)

    async def delete_offer(self, db: AsyncSession, offer_id: str) -> DeleteOfferResponse:
        """Withdraw a pending offer or drop a rejected one. Accepted offers stay."""
        try:
            offer = await self._repo.get_offer(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            await self._repo.get_request_for_update(db, offer.request_id)
            offer = await self._repo.get_offer_for_update(db, offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)
            if offer.status == OfferStatus.ACCEPTED.value:
                raise OfferAlreadyAcceptedError(offer_id, "deleted")
            await self._repo.delete_offer(db, offer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Offer %s deleted (was %s)", offer_id, offer.status)
        return DeleteOfferResponse(deleted=offer_id)
