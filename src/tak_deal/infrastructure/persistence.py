# src/tak_deal/infrastructure/persistence.py
"""DealRepository — raw SQL persistence for the deals table.

payer_agent_id, payee_agent_id and amount_nano appear only in the INSERT;
no statement here ever updates them.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.tak_common.errors import DealAlreadyExistsError, InternalError
from src.tak_deal.domain.models import Deal

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_UQ_OFFER_CONSTRAINT = "uq_deals_offer_id"

_DEAL_COLUMNS = """
    id, request_id, offer_id, payer_agent_id, payee_agent_id, amount_nano, status,
    approved_at, executed_at, execution_receipt, failure_reason, created_at, updated_at
"""

_INSERT_DEAL_SQL = text(f"""
    INSERT INTO deals (id, request_id, offer_id, payer_agent_id, payee_agent_id,
        amount_nano, status)
    VALUES (:id, :request_id, :offer_id, :payer_agent_id, :payee_agent_id,
        :amount_nano, :status)
    RETURNING {_DEAL_COLUMNS}
""")

_GET_DEAL_SQL = text(f"""
    SELECT {_DEAL_COLUMNS}
    FROM deals WHERE id = :id
""")

_GET_DEAL_FOR_UPDATE_SQL = text(f"""
    SELECT {_DEAL_COLUMNS}
    FROM deals WHERE id = :id
    FOR UPDATE
""")

_GET_DEAL_BY_OFFER_SQL = text(f"""
    SELECT {_DEAL_COLUMNS}
    FROM deals WHERE offer_id = :offer_id
""")

_TRANSITION_SQL = text(f"""
    UPDATE deals
    SET status = :new_status,
        approved_at = COALESCE(CAST(:approved_at AS TIMESTAMPTZ), approved_at),
        executed_at = COALESCE(CAST(:executed_at AS TIMESTAMPTZ), executed_at),
        execution_receipt = COALESCE(CAST(:receipt AS TEXT), execution_receipt),
        failure_reason = COALESCE(CAST(:failure_reason AS TEXT), failure_reason),
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING {_DEAL_COLUMNS}
""")

_LIST_DEALS_SQL = text(f"""
    SELECT {_DEAL_COLUMNS}
    FROM deals
    WHERE (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (CAST(:request_id AS TEXT) IS NULL OR request_id = CAST(:request_id AS TEXT))
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")

_DELETE_DEAL_SQL = text("""
    DELETE FROM deals
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_deal(row: Any) -> Deal:
    """Convert a DB result row to a Deal domain object."""
    return Deal(
        id=row.id,
        request_id=row.request_id,
        offer_id=row.offer_id,
        payer_agent_id=row.payer_agent_id,
        payee_agent_id=row.payee_agent_id,
        amount_nano=row.amount_nano,
        status=row.status,
        approved_at=row.approved_at,
        executed_at=row.executed_at,
        execution_receipt=row.execution_receipt,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class DealRepository:
    """Concrete implementation of DealRepositoryProtocol using raw SQL."""

    async def insert_deal(self, db: AsyncSession, deal: Deal) -> Deal:
        try:
            result = await db.execute(
                _INSERT_DEAL_SQL,
                {
                    "id": deal.id,
                    "request_id": deal.request_id,
                    "offer_id": deal.offer_id,
                    "payer_agent_id": deal.payer_agent_id,
                    "payee_agent_id": deal.payee_agent_id,
                    "amount_nano": deal.amount_nano,
                    "status": deal.status,
                },
            )
        except IntegrityError as exc:
            # Lost the race to a concurrent create for the same offer
            if _UQ_OFFER_CONSTRAINT in str(exc.orig):
                raise DealAlreadyExistsError(deal.offer_id) from exc
            raise
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Deal {deal.id} was not returned by INSERT")
        return _row_to_deal(row)

    async def get_deal(self, db: AsyncSession, deal_id: str) -> Deal | None:
        result = await db.execute(_GET_DEAL_SQL, {"id": deal_id})
        row = result.fetchone()
        return _row_to_deal(row) if row else None

    async def get_deal_for_update(self, db: AsyncSession, deal_id: str) -> Deal | None:
        result = await db.execute(_GET_DEAL_FOR_UPDATE_SQL, {"id": deal_id})
        row = result.fetchone()
        return _row_to_deal(row) if row else None

    async def get_deal_by_offer(self, db: AsyncSession, offer_id: str) -> Deal | None:
        result = await db.execute(_GET_DEAL_BY_OFFER_SQL, {"offer_id": offer_id})
        row = result.fetchone()
        return _row_to_deal(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        deal_id: str,
        expected_status: str,
        new_status: str,
        approved_at: datetime | None = None,
        executed_at: datetime | None = None,
        execution_receipt: str | None = None,
        failure_reason: str | None = None,
    ) -> Deal | None:
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "id": deal_id,
                "expected_status": expected_status,
                "new_status": new_status,
                "approved_at": approved_at,
                "executed_at": executed_at,
                "receipt": execution_receipt,
                "failure_reason": failure_reason,
            },
        )
        row = result.fetchone()
        return _row_to_deal(row) if row else None

    async def list_deals(
        self,
        db: AsyncSession,
        status: str | None,
        request_id: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Deal]:
        result = await db.execute(
            _LIST_DEALS_SQL,
            {
                "status": status,
                "request_id": request_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_deal(row) for row in result.fetchall()]

    async def delete_deal(self, db: AsyncSession, deal_id: str, expected_status: str) -> bool:
        """Delete the deal only if it is still in ``expected_status``."""
        result = await db.execute(
            _DELETE_DEAL_SQL, {"id": deal_id, "expected_status": expected_status}
        )
        return result.fetchone() is not None
