# src/tak_negotiation/infrastructure/db_models.py
"""SQLAlchemy ORM models for requests and offers (DDL reference only — queries use raw SQL).

Alembic migrations 003/004 are the authoritative DDL source.
"""
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.tak_common.database import Base


class RequestORM(Base):
    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    requester_agent_id: Mapped[str] = mapped_column(
        Text, ForeignKey("agents.id"), nullable=False
    )
    service_query: Mapped[str] = mapped_column(Text, nullable=False)
    max_price_nano: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class OfferORM(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    request_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("requests.id"), nullable=False
    )
    provider_agent_id: Mapped[str] = mapped_column(
        Text, ForeignKey("agents.id"), nullable=False
    )
    price_nano: Mapped[int] = mapped_column(BigInteger, nullable=False)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
