"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


RESERVATION_STATUSES = ('pending', 'confirmed', 'seated', 'completed', 'cancelled', 'no_show')
RESERVATION_SOURCES = ('online', 'phone', 'walk_in', 'app', 'partner', 'staff')
TABLE_STATUSES = ('available', 'occupied', 'reserved', 'cleaning', 'out_of_order')


def upgrade() -> None:
    # Create restaurants table
    op.create_table(
        'restaurants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('seating_capacity', sa.Integer()),
        sa.Column('tables_count', sa.Integer()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create floor_plans table
    op.create_table(
        'floor_plans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create floor_plan_tables table
    op.create_table(
        'floor_plan_tables',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('floor_plan_id', sa.Uuid(), sa.ForeignKey('floor_plans.id'), nullable=False),
        sa.Column('number', sa.String(20), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('shape', sa.String(20), default='round'),
        sa.Column('status', sa.Enum(*TABLE_STATUSES, name='table_status'), nullable=False, server_default='available'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create reservations table
    op.create_table(
        'reservations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reservation_number', sa.String(32), nullable=False, unique=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(20)),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('special_requests', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('source', sa.Enum(*RESERVATION_SOURCES, name='reservation_source')),
        sa.Column('reservation_datetime', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='120'),
        sa.Column('end_datetime', sa.DateTime(), nullable=False),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('floor_plan_id', sa.Uuid(), sa.ForeignKey('floor_plans.id')),
        sa.Column('table_id', sa.Uuid(), sa.ForeignKey('floor_plan_tables.id')),
        sa.Column('table_number', sa.String(20)),
        sa.Column('table_assigned_at', sa.DateTime()),
        sa.Column('table_assigned_by', sa.Uuid()),
        sa.Column('status', sa.Enum(*RESERVATION_STATUSES, name='reservation_status'), nullable=False, server_default='pending'),
        sa.Column('requested_at', sa.DateTime()),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('seated_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.Column('seating_area', sa.String(50)),
        sa.Column('table_shape', sa.String(20)),
        sa.Column('accessibility', sa.Boolean(), default=False),
        sa.Column('quiet', sa.Boolean(), default=False),
        sa.Column('confirmation_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.Uuid()),
        sa.Column('last_modified_by', sa.Uuid()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create reservation_history table (append-only)
    op.create_table(
        'reservation_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reservation_id', sa.Uuid(), sa.ForeignKey('reservations.id'), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('actor_id', sa.Uuid()),
        sa.Column('detail', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Create notification_attempts table (append-only)
    op.create_table(
        'notification_attempts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reservation_id', sa.Uuid(), sa.ForeignKey('reservations.id'), nullable=False),
        sa.Column('notification_type', sa.String(20), nullable=False),
        sa.Column('channel', sa.String(10), nullable=False),
        sa.Column('recipient', sa.String(255)),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('provider_message_id', sa.String(255)),
        sa.Column('error', sa.Text()),
        sa.Column('attempted_at', sa.DateTime(), nullable=False),
    )

    # Create indexes
    op.create_index('ix_floor_plans_restaurant_id', 'floor_plans', ['restaurant_id'])
    op.create_index('ix_floor_plan_tables_floor_plan_id', 'floor_plan_tables', ['floor_plan_id'])
    op.create_index('ix_reservations_restaurant_id', 'reservations', ['restaurant_id'])
    op.create_index('idx_reservations_restaurant_start', 'reservations', ['restaurant_id', 'reservation_datetime'])
    op.create_index('idx_reservations_restaurant_status', 'reservations', ['restaurant_id', 'status'])
    op.create_index('idx_reservations_table', 'reservations', ['floor_plan_id', 'table_id'])
    op.create_index('idx_reservation_history_reservation', 'reservation_history', ['reservation_id', 'created_at'])
    op.create_index('idx_notification_attempts_reservation', 'notification_attempts', ['reservation_id', 'attempted_at'])


def downgrade() -> None:
    op.drop_table('notification_attempts')
    op.drop_table('reservation_history')
    op.drop_table('reservations')
    op.drop_table('floor_plan_tables')
    op.drop_table('floor_plans')
    op.drop_table('restaurants')
    sa.Enum(name='reservation_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='reservation_source').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='table_status').drop(op.get_bind(), checkfirst=True)
