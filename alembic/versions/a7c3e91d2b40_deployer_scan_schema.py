"""deployer_scan_schema

Create deployer_tokens (persistent per-deployer token cache), scan_log and
scan_usage.

Revision ID: a7c3e91d2b40
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c3e91d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Token cache: alive is tri-state (NULL = never verified)
    op.create_table(
        'deployer_tokens',
        sa.Column('deployer_wallet', sa.String(64), primary_key=True),
        sa.Column('token_address', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('symbol', sa.String(100), nullable=True),
        sa.Column('alive', sa.Boolean(), nullable=True),
        sa.Column('liquidity', sa.Numeric(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('last_checked_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        'idx_deployer_tokens_alive_checked',
        'deployer_tokens',
        ['deployer_wallet', 'alive', 'last_checked_at'],
    )

    # 2. Scan audit log
    op.create_table(
        'scan_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('address', sa.String(64), nullable=False),
        sa.Column('verdict', sa.String(20), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('caller', sa.String(128), nullable=True),
        sa.Column('scanned_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_scan_log_address', 'scan_log', ['address'])
    op.create_index('idx_scan_log_scanned_at', 'scan_log', ['scanned_at'])

    # 3. Per-caller quota counters
    op.create_table(
        'scan_usage',
        sa.Column('caller', sa.String(128), primary_key=True),
        sa.Column('scans_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_scans', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset', sa.Date(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade() -> None:
    op.drop_table('scan_usage')
    op.drop_index('idx_scan_log_scanned_at', table_name='scan_log')
    op.drop_index('idx_scan_log_address', table_name='scan_log')
    op.drop_table('scan_log')
    op.drop_index('idx_deployer_tokens_alive_checked', table_name='deployer_tokens')
    op.drop_table('deployer_tokens')
