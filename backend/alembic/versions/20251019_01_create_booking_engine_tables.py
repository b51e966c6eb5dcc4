"""create booking engine tables

Revision ID: 20251019_01
Revises:
Create Date: 2025-10-19 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '20251019_01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_services_id', 'services', ['id'])
    op.create_index('ix_services_title', 'services', ['title'])

    op.create_table(
        'therapists',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('unavailable_blockouts', sa.JSON(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_therapists_id', 'therapists', ['id'])

    op.create_table(
        'commission_payouts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('therapist_id', sa.Integer(), sa.ForeignKey('therapists.id'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='processed'),
        sa.Column('processed_by', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount >= 0', name='ck_commission_payouts_amount_non_negative'),
        sa.CheckConstraint('period_start <= period_end', name='ck_commission_payouts_period_order'),
    )
    op.create_index('ix_commission_payouts_id', 'commission_payouts', ['id'])
    op.create_index('ix_commission_payouts_therapist_id', 'commission_payouts', ['therapist_id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('visitor_id', sa.String(), nullable=True),
        sa.Column('user_email', sa.String(), nullable=True),
        sa.Column('guest_name', sa.String(), nullable=True),
        sa.Column('guest_email', sa.String(), nullable=True),
        sa.Column('guest_phone', sa.String(), nullable=True),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('therapist_id', sa.Integer(), sa.ForeignKey('therapists.id'), nullable=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('booking_time', sa.Time(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('price_at_booking', sa.Numeric(10, 2), nullable=True),
        sa.Column('commission_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('revenue_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tip_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tip_recipient', sa.String(32), nullable=True),
        sa.Column('payout_id', sa.Integer(), sa.ForeignKey('commission_payouts.id'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        # A booking only joins a payout once it is completed
        sa.CheckConstraint(
            "payout_id IS NULL OR status = 'completed'",
            name='ck_bookings_payout_requires_completed',
        ),
        sa.CheckConstraint('commission_amount >= 0', name='ck_bookings_commission_non_negative'),
        sa.CheckConstraint('tip_amount >= 0', name='ck_bookings_tip_non_negative'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_therapist_id', 'bookings', ['therapist_id'])
    op.create_index('ix_bookings_booking_date', 'bookings', ['booking_date'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    op.create_index('ix_bookings_payout_id', 'bookings', ['payout_id'])
    op.create_index('ix_bookings_status_user', 'bookings', ['status', 'user_id'])
    op.create_index('ix_bookings_status_visitor', 'bookings', ['status', 'visitor_id'])
    op.create_index('ix_bookings_therapist_date', 'bookings', ['therapist_id', 'booking_date'])


def downgrade() -> None:
    op.drop_table('bookings')
    op.drop_table('commission_payouts')
    op.drop_table('therapists')
    op.drop_table('services')
