"""Domain layer for the parking booking assistant."""

from .enums import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    BookingStatus,
    ConversationState,
    DispatchOutcome,
    EffectKind,
    GlobalCommand,
    MessageDirection,
    PaymentEventOutcome,
    ScheduledMessageType,
    StayType,
    TruckType,
    is_allowed_transition,
)
from .models import (
    BookingRecord,
    CheckoutSession,
    ConversationSnapshot,
    DispatchResult,
    Effect,
    InboundSms,
    LotRecord,
    PricingBreakdown,
    ScheduledMessageRecord,
)

__all__ = [
    # Enums
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "BookingStatus",
    "ConversationState",
    "DispatchOutcome",
    "EffectKind",
    "GlobalCommand",
    "MessageDirection",
    "PaymentEventOutcome",
    "ScheduledMessageType",
    "StayType",
    "TruckType",
    "is_allowed_transition",
    # Models
    "BookingRecord",
    "CheckoutSession",
    "ConversationSnapshot",
    "DispatchResult",
    "Effect",
    "InboundSms",
    "LotRecord",
    "PricingBreakdown",
    "ScheduledMessageRecord",
]
