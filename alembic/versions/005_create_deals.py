"""005: create deals table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE deals (
            id                  VARCHAR(32)     PRIMARY KEY,
            request_id          VARCHAR(32)     NOT NULL REFERENCES requests(id) ON DELETE RESTRICT,
            offer_id            VARCHAR(32)     NOT NULL REFERENCES offers(id) ON DELETE RESTRICT,
            payer_agent_id      TEXT            NOT NULL REFERENCES agents(id),
            payee_agent_id      TEXT            NOT NULL REFERENCES agents(id),
            amount_nano         BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'awaiting_approval',
            approved_at         TIMESTAMPTZ,
            executed_at         TIMESTAMPTZ,
            execution_receipt   TEXT,
            failure_reason      TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_deals_offer_id    UNIQUE (offer_id),
            CONSTRAINT ck_deals_id_prefix   CHECK (left(id, 5) = 'deal_'),
            CONSTRAINT ck_deals_amount      CHECK (amount_nano > 0),
            CONSTRAINT ck_deals_status      CHECK (
                status IN ('awaiting_approval', 'approved', 'executed', 'failed', 'cancelled')
            ),
            CONSTRAINT ck_deals_approved_at CHECK (
                status NOT IN ('approved', 'executed', 'failed') OR approved_at IS NOT NULL
            ),
            CONSTRAINT ck_deals_executed    CHECK (
                status <> 'executed'
                OR (executed_at IS NOT NULL AND execution_receipt IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_deals_status ON deals (status, id DESC);")
    op.execute("CREATE INDEX idx_deals_request ON deals (request_id);")
    op.execute("""
        CREATE TRIGGER trg_deals_updated_at
            BEFORE UPDATE ON deals
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TRIGGER trg_deals_freeze_snapshot
            BEFORE UPDATE ON deals
            FOR EACH ROW EXECUTE FUNCTION fn_deals_freeze_snapshot();
    """)
    op.execute("COMMENT ON TABLE deals IS 'Sealed deal snapshots — payer/payee/amount frozen at creation';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS deals CASCADE;")
