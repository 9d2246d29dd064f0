# src/tak_negotiation/infrastructure/persistence.py
"""NegotiationRepository — raw SQL persistence for requests and offers.

All writes use UPDATE/INSERT ... RETURNING so the caller sees the committed
shape of the row without a second round-trip.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tak_common.errors import InternalError
from src.tak_negotiation.domain.models import Offer, Request

# ---------------------------------------------------------------------------
# SQL: requests
# ---------------------------------------------------------------------------

_REQUEST_COLUMNS = """
    id, requester_agent_id, service_query, max_price_nano, status, created_at, updated_at
"""

_INSERT_REQUEST_SQL = text(f"""
    INSERT INTO requests (id, requester_agent_id, service_query, max_price_nano, status)
    VALUES (:id, :requester_agent_id, :service_query, :max_price_nano, :status)
    RETURNING {_REQUEST_COLUMNS}
""")

_GET_REQUEST_SQL = text(f"""
    SELECT {_REQUEST_COLUMNS}
    FROM requests WHERE id = :id
""")

_GET_REQUEST_FOR_UPDATE_SQL = text(f"""
    SELECT {_REQUEST_COLUMNS}
    FROM requests WHERE id = :id
    FOR UPDATE
""")

_SET_REQUEST_STATUS_SQL = text(f"""
    UPDATE requests
    SET status = :status, updated_at = NOW()
    WHERE id = :id
    RETURNING {_REQUEST_COLUMNS}
""")

_LIST_REQUESTS_SQL = text(f"""
    SELECT {_REQUEST_COLUMNS}
    FROM requests
    WHERE (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:requester AS TEXT) IS NULL OR requester_agent_id = CAST(:requester AS TEXT))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

_COUNT_LIVE_OFFERS_SQL = text("""
    SELECT COUNT(*) FROM offers
    WHERE request_id = :request_id AND status IN ('pending', 'accepted')
""")

# Offers first: offers.request_id is ON DELETE RESTRICT
_DELETE_REQUEST_OFFERS_SQL = text("DELETE FROM offers WHERE request_id = :request_id")

_DELETE_REQUEST_SQL = text("DELETE FROM requests WHERE id = :id")

# ---------------------------------------------------------------------------
# SQL: offers
# ---------------------------------------------------------------------------

_OFFER_COLUMNS = """
    id, request_id, provider_agent_id, price_nano, terms, status, created_at, updated_at
"""

_INSERT_OFFER_SQL = text(f"""
    INSERT INTO offers (id, request_id, provider_agent_id, price_nano, terms, status)
    VALUES (:id, :request_id, :provider_agent_id, :price_nano, :terms, :status)
    RETURNING {_OFFER_COLUMNS}
""")

_GET_OFFER_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers WHERE id = :id
""")

_GET_OFFER_FOR_UPDATE_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers WHERE id = :id
    FOR UPDATE
""")

_SET_OFFER_STATUS_SQL = text(f"""
    UPDATE offers
    SET status = :status, updated_at = NOW()
    WHERE id = :id
    RETURNING {_OFFER_COLUMNS}
""")

_UPDATE_OFFER_TERMS_SQL = text(f"""
    UPDATE offers
    SET price_nano = COALESCE(CAST(:price_nano AS BIGINT), price_nano),
        terms = COALESCE(CAST(:terms AS TEXT), terms),
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_OFFER_COLUMNS}
""")

_REJECT_PENDING_OFFERS_SQL = text("""
    UPDATE offers
    SET status = 'rejected', updated_at = NOW()
    WHERE request_id = :request_id
      AND status = 'pending'
      AND (CAST(:exclude_id AS TEXT) IS NULL OR id <> CAST(:exclude_id AS TEXT))
""")

_LIST_OFFERS_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers
    WHERE (CAST(:request_id AS TEXT) IS NULL OR request_id = CAST(:request_id AS TEXT))
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

_DELETE_OFFER_SQL = text("DELETE FROM offers WHERE id = :id")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_request(row: Any) -> Request:
    return Request(
        id=row.id,
        requester_agent_id=row.requester_agent_id,
        service_query=row.service_query,
        max_price_nano=row.max_price_nano,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_offer(row: Any) -> Offer:
    return Offer(
        id=row.id,
        request_id=row.request_id,
        provider_agent_id=row.provider_agent_id,
        price_nano=row.price_nano,
        terms=row.terms,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _one(row: Any, what: str) -> Any:
    # UPDATE ... RETURNING on a row we already locked must return it
    if row is None:
        raise InternalError(f"{what} vanished during update")
    return row


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class NegotiationRepository:
    """Concrete implementation of NegotiationRepositoryProtocol using raw SQL."""

    # --- requests ---

    async def insert_request(self, db: AsyncSession, request: Request) -> Request:
        result = await db.execute(
            _INSERT_REQUEST_SQL,
            {
                "id": request.id,
                "requester_agent_id": request.requester_agent_id,
                "service_query": request.service_query,
                "max_price_nano": request.max_price_nano,
                "status": request.status,
            },
        )
        return _row_to_request(_one(result.fetchone(), f"Request {request.id}"))

    async def get_request(self, db: AsyncSession, request_id: str) -> Request | None:
        result = await db.execute(_GET_REQUEST_SQL, {"id": request_id})
        row = result.fetchone()
        return _row_to_request(row) if row else None

    async def get_request_for_update(
        self, db: AsyncSession, request_id: str
    ) -> Request | None:
        result = await db.execute(_GET_REQUEST_FOR_UPDATE_SQL, {"id": request_id})
        row = result.fetchone()
        return _row_to_request(row) if row else None

    async def set_request_status(
        self, db: AsyncSession, request_id: str, status: str
    ) -> Request:
        result = await db.execute(
            _SET_REQUEST_STATUS_SQL, {"id": request_id, "status": status}
        )
        return _row_to_request(_one(result.fetchone(), f"Request {request_id}"))

    async def list_requests(
        self,
        db: AsyncSession,
        status: str | None,
        requester_agent_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Request]:
        result = await db.execute(
            _LIST_REQUESTS_SQL,
            {
                "status": status,
                "requester": requester_agent_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_request(row) for row in result.fetchall()]

    # --- offers ---

    async def insert_offer(self, db: AsyncSession, offer: Offer) -> Offer:
        result = await db.execute(
            _INSERT_OFFER_SQL,
            {
                "id": offer.id,
                "request_id": offer.request_id,
                "provider_agent_id": offer.provider_agent_id,
                "price_nano": offer.price_nano,
                "terms": offer.terms,
                "status": offer.status,
            },
        )
        return _row_to_offer(_one(result.fetchone(), f"Offer {offer.id}"))

    async def get_offer(self, db: AsyncSession, offer_id: str) -> Offer | None:
        result = await db.execute(_GET_OFFER_SQL, {"id": offer_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def get_offer_for_update(self, db: AsyncSession, offer_id: str) -> Offer | None:
        result = await db.execute(_GET_OFFER_FOR_UPDATE_SQL, {"id": offer_id})
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def set_offer_status(self, db: AsyncSession, offer_id: str, status: str) -> Offer:
        result = await db.execute(_SET_OFFER_STATUS_SQL, {"id": offer_id, "status": status})
        return _row_to_offer(_one(result.fetchone(), f"Offer {offer_id}"))

    async def update_offer_terms(
        self,
        db: AsyncSession,
        offer_id: str,
        price_nano: int | None,
        terms: str | None,
    ) -> Offer:
        result = await db.execute(
            _UPDATE_OFFER_TERMS_SQL,
            {"id": offer_id, "price_nano": price_nano, "terms": terms},
        )
        return _row_to_offer(_one(result.fetchone(), f"Offer {offer_id}"))

    async def reject_pending_offers(
        self, db: AsyncSession, request_id: str, exclude_offer_id: str | None
    ) -> int:
        result = await db.execute(
            _REJECT_PENDING_OFFERS_SQL,
            {"request_id": request_id, "exclude_id": exclude_offer_id},
        )
        return int(result.rowcount or 0)

    async def list_offers(
        self,
        db: AsyncSession,
        request_id: str | None,
        status: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Offer]:
        result = await db.execute(
            _LIST_OFFERS_SQL,
            {
                "request_id": request_id,
                "status": status,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_offer(row) for row in result.fetchall()]

    # --- deletion ---

    async def count_live_offers(self, db: AsyncSession, request_id: str) -> int:
        result = await db.execute(_COUNT_LIVE_OFFERS_SQL, {"request_id": request_id})
        return int(result.scalar_one())

    async def delete_request(self, db: AsyncSession, request_id: str) -> int:
        """Delete a request and its remaining offers; returns the offer count."""
        offers = await db.execute(_DELETE_REQUEST_OFFERS_SQL, {"request_id": request_id})
        await db.execute(_DELETE_REQUEST_SQL, {"id": request_id})
        return int(offers.rowcount or 0)

    async def delete_offer(self, db: AsyncSession, offer_id: str) -> None:
        await db.execute(_DELETE_OFFER_SQL, {"id": offer_id})
