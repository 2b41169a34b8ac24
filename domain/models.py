"""Domain models using Pydantic v2 for the SMS parking booking assistant."""

from datetime import date, datetime
from typing import Optional, Dict, Any, List
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import (
    BookingStatus,
    ConversationState,
    DispatchOutcome,
    EffectKind,
    ScheduledMessageType,
    StayType,
    TruckType,
)


E164_PATTERN = r"^\+[1-9]\d{6,14}$"


class LotRecord(BaseModel):
    """Read-only view of a parking lot owned by inventory management."""

    id: UUID
    name: str
    lot_code: Optional[str] = None
    slug: Optional[str] = None
    region_label: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    nightly_rate_cents: int = Field(..., ge=0)
    weekly_rate_cents: Optional[int] = Field(None, ge=0)
    monthly_rate_cents: Optional[int] = Field(None, ge=0)
    capacity_total: Optional[int] = Field(None, ge=0)
    parking_instructions: Optional[str] = None
    review_url: Optional[str] = None
    timezone: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @property
    def display_name(self) -> str:
        """Name with region label, as shown to drivers."""
        if self.region_label:
            return f"{self.name} – {self.region_label}"
        return self.name


class ConversationSnapshot(BaseModel):
    """Immutable snapshot of one conversation row, handed to state handlers."""

    id: UUID
    driver_phone_e164: str
    current_state: ConversationState
    is_active: bool = True
    location_raw_input: Optional[str] = None
    lot_id: Optional[UUID] = None
    lot_choice_ids: List[UUID] = Field(default_factory=list)
    driver_full_name: Optional[str] = None
    truck_type: Optional[TruckType] = None
    truck_make_model: Optional[str] = None
    license_plate_raw: Optional[str] = None
    stay_type: Optional[StayType] = None
    nights: Optional[int] = Field(None, ge=1)
    quoted_total_cents: Optional[int] = None
    booking_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    last_inbound_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("lot_choice_ids", mode="before")
    @classmethod
    def validate_lot_choice_ids(cls, v: Any) -> List[Any]:
        """Stored as a JSON list, may be NULL."""
        return v or []

    def with_updates(self, updates: Dict[str, Any]) -> "ConversationSnapshot":
        """Return the snapshot a set of field updates would produce."""
        if not updates:
            return self
        return ConversationSnapshot.model_validate({**self.model_dump(), **updates})


class BookingRecord(BaseModel):
    """Booking row: driver/vehicle/stay snapshot plus pricing and payment linkage."""

    id: UUID
    conversation_id: UUID
    lot_id: UUID
    driver_phone_e164: str
    driver_full_name: Optional[str] = None
    truck_type: Optional[TruckType] = None
    truck_make_model: Optional[str] = None
    license_plate_raw: Optional[str] = None
    stay_type: Optional[StayType] = None
    nights: int = Field(..., ge=1)
    start_date: date
    end_date: date
    nightly_rate_cents: int
    weekly_rate_cents: Optional[int] = None
    monthly_rate_cents: Optional[int] = None
    subtotal_cents: int
    deposit_hold_cents: int = 0
    total_cents: int
    currency: str = "usd"
    status: BookingStatus
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ScheduledMessageRecord(BaseModel):
    """Deferred outbound notification."""

    id: UUID
    booking_id: UUID
    lot_id: UUID
    driver_phone_e164: str
    driver_full_name: Optional[str] = None
    message_type: ScheduledMessageType
    send_at: datetime
    sent_at: Optional[datetime] = None
    last_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PricingBreakdown(BaseModel):
    """Cost of a stay, all amounts in integer cents."""

    nightly_rate_cents: int = Field(..., ge=0)
    subtotal_cents: int = Field(..., ge=0)
    # Always 0 for now; persisted on bookings so the column is stable.
    deposit_hold_cents: int = Field(default=0, ge=0)
    total_cents: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class CheckoutSession(BaseModel):
    """Hosted checkout session returned by the payment gateway."""

    id: str
    url: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None


class DispatchResult(BaseModel):
    """Outcome of one outbound send attempt."""

    outcome: DispatchOutcome
    reason: Optional[str] = None
    provider_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def sent(cls, provider_id: Optional[str] = None) -> "DispatchResult":
        return cls(outcome=DispatchOutcome.SENT, provider_id=provider_id)

    @classmethod
    def permanent(cls, reason: str) -> "DispatchResult":
        return cls(outcome=DispatchOutcome.PERMANENT_FAILURE, reason=reason)

    @classmethod
    def transient(cls, reason: str) -> "DispatchResult":
        return cls(outcome=DispatchOutcome.TRANSIENT_FAILURE, reason=reason)

    @property
    def ok(self) -> bool:
        return self.outcome == DispatchOutcome.SENT

    @property
    def marks_dispatched(self) -> bool:
        """Sent and permanent failures close the item; transient ones stay retryable."""
        return self.outcome in (DispatchOutcome.SENT, DispatchOutcome.PERMANENT_FAILURE)


class Effect(BaseModel):
    """Side effect requested by a state handler, executed by the engine."""

    kind: EffectKind
    text: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def create_booking(cls) -> "Effect":
        return cls(kind=EffectKind.CREATE_BOOKING)

    @classmethod
    def alert(cls, text: str) -> "Effect":
        return cls(kind=EffectKind.ALERT_OPERATOR, text=text)


class InboundSms(BaseModel):
    """Inbound SMS as delivered by the messaging webhook."""

    phone: str = Field(..., pattern=E164_PATTERN, description="Sender phone in E.164 format")
    body: str = ""
    raw_payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(str_strip_whitespace=True)
