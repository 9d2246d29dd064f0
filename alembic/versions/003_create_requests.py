"""003: create requests table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE requests (
            id                  VARCHAR(32)     PRIMARY KEY,
            requester_agent_id  TEXT            NOT NULL REFERENCES agents(id),
            service_query       TEXT            NOT NULL,
            max_price_nano      BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'open',
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_requests_id_prefix    CHECK (left(id, 4) = 'req_'),
            CONSTRAINT ck_requests_max_price    CHECK (max_price_nano > 0),
            CONSTRAINT ck_requests_query        CHECK (length(btrim(service_query)) > 0),
            CONSTRAINT ck_requests_status       CHECK (status IN ('open', 'closed', 'cancelled'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_requests_requester ON requests (requester_agent_id, id DESC);"
    )
    op.execute("CREATE INDEX idx_requests_status ON requests (status, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_requests_updated_at
            BEFORE UPDATE ON requests
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE requests IS 'Service requests under a nanoTON price ceiling';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS requests CASCADE;")
