"""Scout config and queue tables

Revision ID: 001_scout_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_scout_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Scout configs table
    op.create_table(
        'scout_configs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('policy_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_run_at', sa.DateTime(), nullable=True),
        sa.Column('total_runs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_opportunities_found', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_scout_configs_enabled', 'scout_configs', ['enabled'])

    # Scout queue table
    op.create_table(
        'scout_queue',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('scout_config_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=128), nullable=True),
        sa.Column('source_platform', sa.String(length=64), nullable=False),
        sa.Column('target_platform', sa.String(length=64), nullable=False),
        sa.Column('source_price', sa.Float(), nullable=False),
        sa.Column('target_price', sa.Float(), nullable=True),
        sa.Column('estimated_margin_pct', sa.Float(), nullable=True),
        sa.Column('estimated_profit', sa.Float(), nullable=True),
        sa.Column('product_name', sa.Text(), nullable=True),
        sa.Column('product_url', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('listed_at', sa.DateTime(), nullable=True),
        sa.Column('listing_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['scout_config_id'], ['scout_configs.id'], )
    )
    op.create_index('ix_scout_queue_status', 'scout_queue', ['status'])
    op.create_index('ix_scout_queue_config', 'scout_queue', ['scout_config_id'])
    op.create_index('ix_scout_queue_created_at', 'scout_queue', ['created_at'])
    op.create_index(
        'ix_scout_queue_dedupe',
        'scout_queue',
        ['scout_config_id', 'source_platform', 'status']
    )


def downgrade() -> None:
    op.drop_index('ix_scout_queue_dedupe', table_name='scout_queue')
    op.drop_index('ix_scout_queue_created_at', table_name='scout_queue')
    op.drop_index('ix_scout_queue_config', table_name='scout_queue')
    op.drop_index('ix_scout_queue_status', table_name='scout_queue')
    op.drop_table('scout_queue')
    op.drop_index('ix_scout_configs_enabled', table_name='scout_configs')
    op.drop_table('scout_configs')
