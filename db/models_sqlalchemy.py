"""SQLAlchemy models for the parking booking assistant tables."""

from datetime import datetime, date
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from core.utils_datetime import get_current_datetime
from domain.enums import BookingStatus, ConversationState


class Lot(Base, TimestampMixin):
    """Parking lot table model. Owned by inventory management, read-only here."""

    __tablename__ = "lots"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    lot_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    slug: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    region_label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    address_line1: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    address_line2: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True, index=True)
    zip: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    nightly_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    monthly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    capacity_total: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    parking_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_lots_city_state", "city", "state"),
    )

    def __repr__(self) -> str:
        return f"<Lot(id={self.id}, name='{self.name}', code='{self.lot_code}')>"


class Conversation(Base, TimestampMixin):
    """Per-phone booking session. Deactivated, never deleted."""

    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    driver_phone_e164: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    current_state: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ConversationState.AWAITING_LOCATION_OR_LOT_CODE.value,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    location_raw_input: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    lot_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("lots.id"), nullable=True
    )
    lot_choice_ids: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    driver_full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    truck_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    truck_make_model: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    license_plate_raw: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stay_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nights: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    quoted_total_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    booking_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    last_inbound_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_conversations_phone_active", "driver_phone_e164", "is_active"),
        Index("ix_conversations_active_last_inbound", "is_active", "last_inbound_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, phone='{self.driver_phone_e164}', "
            f"state='{self.current_state}', active={self.is_active})>"
        )


class Booking(Base, TimestampMixin):
    """Booking table model: snapshot of the conversation at confirmation time."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    conversation_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("conversations.id"), nullable=False, index=True
    )
    lot_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("lots.id"), nullable=False, index=True)

    driver_phone_e164: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    driver_full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    truck_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    truck_make_model: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    license_plate_raw: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stay_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    nightly_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    monthly_rate_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_hold_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING_PAYMENT.value,
        index=True,
    )
    stripe_session_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_bookings_lot_dates", "lot_id", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, lot_id={self.lot_id}, "
            f"dates={self.start_date}..{self.end_date}, status='{self.status}')>"
        )


class SmsMessage(Base):
    """Inbound/outbound SMS log."""

    __tablename__ = "sms_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    conversation_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("conversations.id"), nullable=True, index=True
    )
    phone_e164: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    raw_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=get_current_datetime,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<SmsMessage(id={self.id}, phone='{self.phone_e164}', direction='{self.direction}')>"


class ScheduledMessage(Base, TimestampMixin):
    """Deferred one-shot notification dispatched by external polling."""

    __tablename__ = "scheduled_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    lot_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("lots.id"), nullable=False)
    driver_phone_e164: Mapped[str] = mapped_column(String(20), nullable=False)
    driver_full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    message_type: Mapped[str] = mapped_column(String(30), nullable=False)

    send_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_scheduled_messages_due", "sent_at", "send_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduledMessage(id={self.id}, type='{self.message_type}', "
            f"send_at={self.send_at}, sent_at={self.sent_at})>"
        )
