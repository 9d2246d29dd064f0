"""001: create common functions

Revision ID: 001
Revises: 
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    # Sealed deal snapshot: parties and amount can never be rewritten
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_deals_freeze_snapshot()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.amount_nano <> OLD.amount_nano
               OR NEW.payer_agent_id <> OLD.payer_agent_id
               OR NEW.payee_agent_id <> OLD.payee_agent_id
               OR NEW.offer_id <> OLD.offer_id
               OR NEW.request_id <> OLD.request_id THEN
                RAISE EXCEPTION 'deal % snapshot is immutable', OLD.id;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS fn_deals_freeze_snapshot();")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
