"""create player_tokens

Revision ID: 5c2d9e7a1b40
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e7a1b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'player_tokens' in insp.get_table_names():
        return
    op.create_table(
        'player_tokens',
        sa.Column('player_id', sa.String(length=64), primary_key=True),
        sa.Column('total_tokens', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_player_tokens_total_tokens', 'player_tokens', ['total_tokens'])


def downgrade():
    op.drop_index('ix_player_tokens_total_tokens', table_name='player_tokens')
    op.drop_table('player_tokens')
