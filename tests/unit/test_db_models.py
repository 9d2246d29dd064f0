"""The ORM models mirror the migrations; the raw SQL must select every mapped column."""

import pytest

from src.tak_agent.infrastructure.db_models import AgentORM
from src.tak_deal.infrastructure import persistence as deal_persistence
from src.tak_deal.infrastructure.db_models import DealORM
from src.tak_negotiation.infrastructure import persistence as negotiation_persistence
from src.tak_negotiation.infrastructure.db_models import OfferORM, RequestORM


def _columns(sql_fragment: str) -> set[str]:
    return {c.strip() for c in sql_fragment.split(",") if c.strip()}


@pytest.mark.parametrize(
    ("model", "selected"),
    [
        (RequestORM, negotiation_persistence._REQUEST_COLUMNS),
        (OfferORM, negotiation_persistence._OFFER_COLUMNS),
        (DealORM, deal_persistence._DEAL_COLUMNS),
    ],
)
def test_selected_columns_match_model(model, selected: str) -> None:
    assert _columns(selected) == set(model.__table__.columns.keys())


def test_deal_offer_is_unique() -> None:
    names = {c.name for c in DealORM.__table__.constraints}
    assert "uq_deals_offer_id" in names


def test_amount_columns_are_bigint() -> None:
    for column in (
        RequestORM.__table__.c.max_price_nano,
        OfferORM.__table__.c.price_nano,
        DealORM.__table__.c.amount_nano,
    ):
        assert column.type.python_type is int
        assert not column.nullable


def test_parties_reference_agents() -> None:
    for column in (DealORM.__table__.c.payer_agent_id, DealORM.__table__.c.payee_agent_id):
        assert {fk.column.table.name for fk in column.foreign_keys} == {"agents"}
    assert AgentORM.__tablename__ == "agents"
