"""SQLAlchemy ORM model for the deals table (DDL reference only — queries use raw SQL).

Alembic migration 005_create_deals.py is the authoritative DDL source.
"""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.tak_common.database import Base


class DealORM(Base):
    __tablename__ = "deals"
    __table_args__ = (UniqueConstraint("offer_id", name="uq_deals_offer_id"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    request_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("requests.id"), nullable=False
    )
    offer_id: Mapped[str] = mapped_column(String(32), ForeignKey("offers.id"), nullable=False)
    payer_agent_id: Mapped[str] = mapped_column(Text, ForeignKey("agents.id"), nullable=False)
    payee_agent_id: Mapped[str] = mapped_column(Text, ForeignKey("agents.id"), nullable=False)
    amount_nano: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="awaiting_approval")
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    execution_receipt: Mapped[str | None] = mapped_column(Text)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
