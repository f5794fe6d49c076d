"""deployer_deploy_times_and_history

Keep each token's creation tx time and the deployer's discovery outcome so a
warm rescan scores burner/velocity and confidence like the full discovery did.

Revision ID: c41f0b7e9a12
Revises: a7c3e91d2b40
Create Date: 2026-10-17 18:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c41f0b7e9a12'
down_revision: Union[str, None] = 'a7c3e91d2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('deployer_tokens', sa.Column('deployed_at', sa.DateTime(), nullable=True))

    op.create_table(
        'deployer_history',
        sa.Column('deployer_wallet', sa.String(64), primary_key=True),
        sa.Column('may_be_incomplete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'discovery_method', sa.String(20), nullable=False, server_default='enhanced_api'
        ),
        sa.Column('discovered_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('deployer_history')
    with op.batch_alter_table('deployer_tokens') as batch_op:
        batch_op.drop_column('deployed_at')
