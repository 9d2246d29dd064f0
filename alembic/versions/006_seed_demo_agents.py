"""006: seed demo agents

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO agents (id, name, description, status) VALUES
            ('ag_buyer_seed_001', 'BuyerAgent',
             'Discovers and negotiates data services', 'active'),
            ('ag_data_seed_001', 'DataAgent',
             'Provides normalized market data packages on request', 'active'),
            ('ag_data_seed_002', 'ArchiveAgent',
             'Provides historical market data archives', 'active')
        ON CONFLICT (id) DO NOTHING;
    """)


def downgrade() -> None:
    op.execute("""
        DELETE FROM agents
        WHERE id IN ('ag_buyer_seed_001', 'ag_data_seed_001', 'ag_data_seed_002');
    """)
