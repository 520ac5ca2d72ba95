"""Initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Experiments
    op.create_table(
        'ab_experiments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=False, server_default='general'),
        sa.Column('base_title', sa.String(500), nullable=False, server_default=''),
        sa.Column('base_description', sa.Text, nullable=False, server_default=''),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('base_images', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('duration_days', sa.Integer, nullable=True),
        sa.Column('rotation_interval_hours', sa.Integer, nullable=False, server_default='24'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('current_variant_index', sa.Integer, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('last_rotated_at', sa.DateTime, nullable=True),
        sa.Column('stopped_at', sa.DateTime, nullable=True),
        sa.Column('winner_variant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_ab_experiments_status', 'ab_experiments', ['status'])
    op.create_index('ix_ab_experiments_started_at', 'ab_experiments', ['started_at'])

    # Variants
    op.create_table(
        'ab_variants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'experiment_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('ab_experiments.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('index', sa.Integer, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('title', sa.String(500), nullable=False, server_default=''),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('images', postgresql.JSONB, nullable=False, server_default='[]'),
        sa.Column('views', sa.Integer, nullable=False, server_default='0'),
        sa.Column('contacts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('favorites', sa.Integer, nullable=False, server_default='0'),
        sa.Column('external_listing_id', sa.String(100), nullable=True),
        sa.Column('published_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('experiment_id', 'index', name='uq_ab_variants_experiment_index'),
        sa.CheckConstraint('views >= 0', name='ck_ab_variants_views_non_negative'),
        sa.CheckConstraint('contacts >= 0', name='ck_ab_variants_contacts_non_negative'),
        sa.CheckConstraint('favorites >= 0', name='ck_ab_variants_favorites_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_ab_variants_price_non_negative'),
    )


def downgrade() -> None:
    op.drop_table('ab_variants')
    op.drop_index('ix_ab_experiments_started_at', table_name='ab_experiments')
    op.drop_index('ix_ab_experiments_status', table_name='ab_experiments')
    op.drop_table('ab_experiments')
