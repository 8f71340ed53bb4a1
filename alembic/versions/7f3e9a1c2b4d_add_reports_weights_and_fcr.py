"""add farm reports, weight records and fcr calculations

Revision ID: 7f3e9a1c2b4d
Revises: 1a2b3c4d5e6f
Create Date: 2026-03-09 16:40:02.530211

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7f3e9a1c2b4d'
down_revision: Union[str, None] = '1a2b3c4d5e6f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'farm_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('flock_id', sa.Integer(), sa.ForeignKey('flocks.id'), nullable=False),
        sa.Column('reporter_id', sa.Integer(), nullable=False),
        sa.Column('report_date', sa.Date(), nullable=False),
        sa.Column('feed_consumed_kg', sa.Float(), server_default='0'),
        sa.Column('feed_brand', sa.String(), server_default=''),
        sa.Column('mortality_count', sa.Integer(), server_default='0'),
        sa.Column('temperature_celsius', sa.Float(), nullable=True),
        sa.Column('clinical_signs', sa.String(), server_default=''),
        sa.Column('handover_notes', sa.String(), server_default=''),
        sa.Column('status', sa.String(), nullable=False, server_default='PENDING'),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('vet_notes', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_farm_reports_flock_status', 'farm_reports', ['flock_id', 'status'])

    op.create_table(
        'weight_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('flock_id', sa.Integer(), sa.ForeignKey('flocks.id'), nullable=False),
        sa.Column('sample_date', sa.Date(), nullable=True),
        sa.Column('bird_identifier', sa.String(), server_default=''),
        sa.Column('weight_kg', sa.Float(), server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    # One row per (flock, week); recalculation upserts on this key
    op.create_table(
        'fcr_calculations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('flock_id', sa.Integer(), sa.ForeignKey('flocks.id'), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('avg_weight_kg', sa.Float(), nullable=False),
        sa.Column('total_feed_kg', sa.Float(), nullable=False),
        sa.Column('fcr', sa.Float(), nullable=False),
        sa.Column('calculated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('flock_id', 'week_number', name='uq_fcr_flock_week'),
    )


def downgrade() -> None:
    op.drop_table('fcr_calculations')
    op.drop_table('weight_records')
    op.drop_index('ix_farm_reports_flock_status', table_name='farm_reports')
    op.drop_table('farm_reports')
