"""create_workers

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'workers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('ip', sa.String(255), nullable=False),
        sa.Column('port', sa.Integer(), nullable=False),
        sa.Column('api_key', sa.Text(), nullable=False, server_default=''),
        sa.Column('private_key', sa.Text(), nullable=False, server_default=''),
        sa.Column('public_key', sa.Text(), nullable=False, server_default=''),
        sa.Column('cidr', sa.String(64), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_worker_cidr', 'workers', ['cidr'], unique=True)


def downgrade() -> None:
    op.drop_index('idx_worker_cidr', table_name='workers')
    op.drop_table('workers')
