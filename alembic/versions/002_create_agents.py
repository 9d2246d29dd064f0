"""002: create agents table

Agents are registered outside this service; the table is read for
existence checks only.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE agents (
            id              TEXT            PRIMARY KEY,
            name            TEXT            NOT NULL,
            description     TEXT,
            status          VARCHAR(20)     NOT NULL DEFAULT 'active',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_agents_name       UNIQUE (name),
            CONSTRAINT ck_agents_status     CHECK (status IN ('active', 'disabled'))
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS agents CASCADE;")
