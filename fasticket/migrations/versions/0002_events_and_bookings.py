"""create events and bookings tables

Revision ID: 0002_events_and_bookings
Revises: 0001_initial
Create Date: 2025-11-02 10:30:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = '0002_events_and_bookings'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cover_image_url', sa.String(length=1024), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('venue_name', sa.String(length=255), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('ticket_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('is_free', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_capacity', sa.Integer(), nullable=False),
        sa.Column('available_capacity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('slug'),
        sa.CheckConstraint('available_capacity >= 0', name='ck_events_available_non_negative'),
        sa.CheckConstraint('available_capacity <= total_capacity', name='ck_events_available_le_total'),
    )
    op.create_index('ix_events_organization_id', 'events', ['organization_id'], unique=False)
    op.create_index('ix_events_slug', 'events', ['slug'], unique=False)
    op.create_index('ix_events_start_date', 'events', ['start_date'], unique=False)
    op.create_index('ix_events_end_date', 'events', ['end_date'], unique=False)
    op.create_index('ix_events_status', 'events', ['status'], unique=False)

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='confirmed'),
        sa.Column('booking_code', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('booking_code'),
        sa.CheckConstraint('quantity >= 1', name='ck_bookings_quantity_positive'),
    )
    op.create_index('ix_bookings_event_id', 'bookings', ['event_id'], unique=False)
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'], unique=False)
    op.create_index('ix_bookings_booking_code', 'bookings', ['booking_code'], unique=False)
    # one confirmed booking per (event, user)
    op.create_index(
        'uq_bookings_confirmed_event_user',
        'bookings',
        ['event_id', 'user_id'],
        unique=True,
        sqlite_where=sa.text("status = 'confirmed'"),
        postgresql_where=sa.text("status = 'confirmed'"),
    )


def downgrade():
    op.drop_index('uq_bookings_confirmed_event_user', table_name='bookings')
    op.drop_index('ix_bookings_booking_code', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_index('ix_bookings_event_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_events_status', table_name='events')
    op.drop_index('ix_events_end_date', table_name='events')
    op.drop_index('ix_events_start_date', table_name='events')
    op.drop_index('ix_events_slug', table_name='events')
    op.drop_index('ix_events_organization_id', table_name='events')
    op.drop_table('events')
