"""create_monitoring_tables

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-16 09:12:04.518233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'monitored_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(length=64), nullable=False, comment='Token contract address'),
        sa.Column('pair_address', sa.String(length=64), nullable=False, comment='DEX pair address'),
        sa.Column('symbol', sa.String(length=64), nullable=False, comment='Token symbol'),
        sa.Column('name', sa.String(length=255), nullable=False, comment='Token name'),
        sa.Column('initial_price', sa.Float(), nullable=False, comment='Initial token price at detection'),
        sa.Column('initial_market_cap', sa.Float(), nullable=False, comment='Market cap at first detection'),
        sa.Column('dev_wallet', sa.String(length=64), nullable=False, comment='Developer wallet address'),
        sa.Column('achievements', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Achievement multipliers reached'),
        sa.Column('last_price', sa.Float(), nullable=False, comment='Most recent price'),
        sa.Column('last_market_cap', sa.Float(), nullable=False, comment='Most recent market cap'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Pair creation time on the DEX'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_monitored_tokens_address'), 'monitored_tokens', ['address'], unique=True)
    op.create_index(op.f('ix_monitored_tokens_dev_wallet'), 'monitored_tokens', ['dev_wallet'], unique=False)
    op.create_index(op.f('ix_monitored_tokens_created_at'), 'monitored_tokens', ['created_at'], unique=False)

    op.create_table(
        'token_achievements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token_address', sa.String(length=64), nullable=False),
        sa.Column('multiplier', sa.Float(), nullable=False, comment='Achievement multiplier value'),
        sa.Column('achieved_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('price_at_achievement', sa.Float(), nullable=False),
        sa.Column('market_cap_at_achievement', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['token_address'], ['monitored_tokens.address']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_address', 'multiplier', name='uq_token_achievement')
    )
    op.create_index('idx_token_achievements_token_address', 'token_achievements', ['token_address'], unique=False)

    op.create_table(
        'dev_wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(length=64), nullable=False, comment='Developer wallet address'),
        sa.Column('tokens_created', postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment='Created token addresses'),
        sa.Column('total_tokens', sa.Integer(), nullable=False),
        sa.Column('last_token_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_blacklisted', sa.Boolean(), nullable=False),
        sa.Column('reputation_score', sa.Integer(), nullable=False, comment='Reputation score (0-100)'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_dev_wallets_address'), 'dev_wallets', ['address'], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_dev_wallets_address'), table_name='dev_wallets')
    op.drop_table('dev_wallets')
    op.drop_index('idx_token_achievements_token_address', table_name='token_achievements')
    op.drop_table('token_achievements')
    op.drop_index(op.f('ix_monitored_tokens_created_at'), table_name='monitored_tokens')
    op.drop_index(op.f('ix_monitored_tokens_dev_wallet'), table_name='monitored_tokens')
    op.drop_index(op.f('ix_monitored_tokens_address'), table_name='monitored_tokens')
    op.drop_table('monitored_tokens')
