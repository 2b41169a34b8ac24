"""Initial schema - lots, conversations, bookings, sms_messages, scheduled_messages.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database tables."""
    # Lots (maintained by inventory management)
    op.create_table(
        'lots',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('lot_code', sa.String(length=50), nullable=True),
        sa.Column('slug', sa.String(length=200), nullable=True),
        sa.Column('region_label', sa.String(length=200), nullable=True),
        sa.Column('address_line1', sa.String(length=200), nullable=True),
        sa.Column('address_line2', sa.String(length=200), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('zip', sa.String(length=10), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('nightly_rate_cents', sa.Integer(), nullable=False),
        sa.Column('weekly_rate_cents', sa.Integer(), nullable=True),
        sa.Column('monthly_rate_cents', sa.Integer(), nullable=True),
        sa.Column('capacity_total', sa.Integer(), nullable=True),
        sa.Column('parking_instructions', sa.Text(), nullable=True),
        sa.Column('review_url', sa.String(length=500), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_lots'))
    )
    op.create_index(op.f('ix_lots_lot_code'), 'lots', ['lot_code'], unique=False)
    op.create_index(op.f('ix_lots_slug'), 'lots', ['slug'], unique=False)
    op.create_index(op.f('ix_lots_city'), 'lots', ['city'], unique=False)
    op.create_index(op.f('ix_lots_state'), 'lots', ['state'], unique=False)
    op.create_index(op.f('ix_lots_created_at'), 'lots', ['created_at'], unique=False)
    op.create_index('ix_lots_city_state', 'lots', ['city', 'state'], unique=False)

    # Conversations
    op.create_table(
        'conversations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('driver_phone_e164', sa.String(length=20), nullable=False),
        sa.Column('current_state', sa.String(length=50), nullable=False,
                  server_default='awaiting_location_or_lot_code'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('location_raw_input', sa.String(length=200), nullable=True),
        sa.Column('lot_id', sa.Uuid(), nullable=True),
        sa.Column('lot_choice_ids', sa.JSON(), nullable=True),
        sa.Column('driver_full_name', sa.String(length=200), nullable=True),
        sa.Column('truck_type', sa.String(length=20), nullable=True),
        sa.Column('truck_make_model', sa.String(length=200), nullable=True),
        sa.Column('license_plate_raw', sa.String(length=50), nullable=True),
        sa.Column('stay_type', sa.String(length=20), nullable=True),
        sa.Column('nights', sa.Integer(), nullable=True),
        sa.Column('quoted_total_cents', sa.Integer(), nullable=True),
        sa.Column('booking_id', sa.Uuid(), nullable=True),
        sa.Column('last_inbound_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['lot_id'], ['lots.id'], name=op.f('fk_conversations_lot_id_lots')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_conversations'))
    )
    op.create_index(op.f('ix_conversations_driver_phone_e164'), 'conversations', ['driver_phone_e164'], unique=False)
    op.create_index(op.f('ix_conversations_created_at'), 'conversations', ['created_at'], unique=False)
    op.create_index('ix_conversations_phone_active', 'conversations', ['driver_phone_e164', 'is_active'], unique=False)
    op.create_index('ix_conversations_active_last_inbound', 'conversations', ['is_active', 'last_inbound_at'], unique=False)

    # Bookings
    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('lot_id', sa.Uuid(), nullable=False),
        sa.Column('driver_phone_e164', sa.String(length=20), nullable=False),
        sa.Column('driver_full_name', sa.String(length=200), nullable=True),
        sa.Column('truck_type', sa.String(length=20), nullable=True),
        sa.Column('truck_make_model', sa.String(length=200), nullable=True),
        sa.Column('license_plate_raw', sa.String(length=50), nullable=True),
        sa.Column('stay_type', sa.String(length=20), nullable=True),
        sa.Column('nights', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('nightly_rate_cents', sa.Integer(), nullable=False),
        sa.Column('weekly_rate_cents', sa.Integer(), nullable=True),
        sa.Column('monthly_rate_cents', sa.Integer(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('deposit_hold_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending_payment'),
        sa.Column('stripe_session_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'],
                                name=op.f('fk_bookings_conversation_id_conversations')),
        sa.ForeignKeyConstraint(['lot_id'], ['lots.id'], name=op.f('fk_bookings_lot_id_lots')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_bookings')),
        sa.UniqueConstraint('stripe_session_id', name=op.f('uq_bookings_stripe_session_id'))
    )
    op.create_index(op.f('ix_bookings_conversation_id'), 'bookings', ['conversation_id'], unique=False)
    op.create_index(op.f('ix_bookings_lot_id'), 'bookings', ['lot_id'], unique=False)
    op.create_index(op.f('ix_bookings_driver_phone_e164'), 'bookings', ['driver_phone_e164'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)
    op.create_index('ix_bookings_lot_dates', 'bookings', ['lot_id', 'start_date', 'end_date'], unique=False)

    # SMS log
    op.create_table(
        'sms_messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=True),
        sa.Column('phone_e164', sa.String(length=20), nullable=False),
        sa.Column('direction', sa.String(length=10), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('raw_payload', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'],
                                name=op.f('fk_sms_messages_conversation_id_conversations')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sms_messages'))
    )
    op.create_index(op.f('ix_sms_messages_conversation_id'), 'sms_messages', ['conversation_id'], unique=False)
    op.create_index(op.f('ix_sms_messages_phone_e164'), 'sms_messages', ['phone_e164'], unique=False)
    op.create_index(op.f('ix_sms_messages_created_at'), 'sms_messages', ['created_at'], unique=False)

    # Scheduled messages
    op.create_table(
        'scheduled_messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.Uuid(), nullable=False),
        sa.Column('lot_id', sa.Uuid(), nullable=False),
        sa.Column('driver_phone_e164', sa.String(length=20), nullable=False),
        sa.Column('driver_full_name', sa.String(length=200), nullable=True),
        sa.Column('message_type', sa.String(length=30), nullable=False),
        sa.Column('send_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'],
                                name=op.f('fk_scheduled_messages_booking_id_bookings')),
        sa.ForeignKeyConstraint(['lot_id'], ['lots.id'], name=op.f('fk_scheduled_messages_lot_id_lots')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_scheduled_messages'))
    )
    op.create_index(op.f('ix_scheduled_messages_booking_id'), 'scheduled_messages', ['booking_id'], unique=False)
    op.create_index(op.f('ix_scheduled_messages_created_at'), 'scheduled_messages', ['created_at'], unique=False)
    op.create_index('ix_scheduled_messages_due', 'scheduled_messages', ['sent_at', 'send_at'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_scheduled_messages_due', table_name='scheduled_messages')
    op.drop_index(op.f('ix_scheduled_messages_created_at'), table_name='scheduled_messages')
    op.drop_index(op.f('ix_scheduled_messages_booking_id'), table_name='scheduled_messages')
    op.drop_table('scheduled_messages')

    op.drop_index(op.f('ix_sms_messages_created_at'), table_name='sms_messages')
    op.drop_index(op.f('ix_sms_messages_phone_e164'), table_name='sms_messages')
    op.drop_index(op.f('ix_sms_messages_conversation_id'), table_name='sms_messages')
    op.drop_table('sms_messages')

    op.drop_index('ix_bookings_lot_dates', table_name='bookings')
    op.drop_index(op.f('ix_bookings_created_at'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_status'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_driver_phone_e164'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_lot_id'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_conversation_id'), table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_conversations_active_last_inbound', table_name='conversations')
    op.drop_index('ix_conversations_phone_active', table_name='conversations')
    op.drop_index(op.f('ix_conversations_created_at'), table_name='conversations')
    op.drop_index(op.f('ix_conversations_driver_phone_e164'), table_name='conversations')
    op.drop_table('conversations')

    op.drop_index('ix_lots_city_state', table_name='lots')
    op.drop_index(op.f('ix_lots_created_at'), table_name='lots')
    op.drop_index(op.f('ix_lots_state'), table_name='lots')
    op.drop_index(op.f('ix_lots_city'), table_name='lots')
    op.drop_index(op.f('ix_lots_slug'), table_name='lots')
    op.drop_index(op.f('ix_lots_lot_code'), table_name='lots')
    op.drop_table('lots')
