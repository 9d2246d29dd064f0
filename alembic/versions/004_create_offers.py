"""004: create offers table

At most one accepted offer per request is enforced by a partial unique index.

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE offers (
            id                  VARCHAR(32)     PRIMARY KEY,
            request_id          VARCHAR(32)     NOT NULL REFERENCES requests(id) ON DELETE RESTRICT,
            provider_agent_id   TEXT            NOT NULL REFERENCES agents(id),
            price_nano          BIGINT          NOT NULL,
            terms               TEXT,
            status              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_offers_id_prefix  CHECK (left(id, 4) = 'off_'),
            CONSTRAINT ck_offers_price      CHECK (price_nano > 0),
            CONSTRAINT ck_offers_status     CHECK (status IN ('pending', 'accepted', 'rejected'))
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_offers_one_accepted_per_request
        ON offers (request_id)
        WHERE status = 'accepted';
    """)
    op.execute("CREATE INDEX idx_offers_request_status ON offers (request_id, status);")
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE offers IS 'Provider offers; price_nano <= request ceiling';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers CASCADE;")
