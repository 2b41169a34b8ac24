"""Domain enums for the SMS parking booking assistant."""

from enum import Enum
from typing import Dict, FrozenSet, Optional


class ConversationState(str, Enum):
    """Where a driver is in the booking flow."""

    AWAITING_LOCATION_OR_LOT_CODE = "awaiting_location_or_lot_code"
    AWAITING_LOT_CHOICE = "awaiting_lot_choice"
    AWAITING_NAME = "awaiting_name"
    AWAITING_TRUCK_TYPE = "awaiting_truck_type"
    AWAITING_MAKE_MODEL = "awaiting_make_model"
    AWAITING_PLATE = "awaiting_plate"
    AWAITING_STAY_OPTION = "awaiting_stay_option"
    AWAITING_CUSTOM_NIGHTS = "awaiting_custom_nights"
    AWAITING_SUMMARY_CONFIRMATION = "awaiting_summary_confirmation"
    AWAITING_PAYMENT = "awaiting_payment"

    # Terminal
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        """Terminal states never hold an active conversation."""
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[ConversationState] = frozenset({
    ConversationState.CANCELLED,
    ConversationState.EXPIRED,
    ConversationState.COMPLETED,
})


_S = ConversationState

# Forward edges per state; staying put and forcing a terminal state are
# always allowed and added below.
_FORWARD: Dict[ConversationState, FrozenSet[ConversationState]] = {
    _S.AWAITING_LOCATION_OR_LOT_CODE: frozenset({_S.AWAITING_NAME, _S.AWAITING_LOT_CHOICE}),
    _S.AWAITING_LOT_CHOICE: frozenset({_S.AWAITING_NAME}),
    _S.AWAITING_NAME: frozenset({_S.AWAITING_TRUCK_TYPE}),
    _S.AWAITING_TRUCK_TYPE: frozenset({_S.AWAITING_MAKE_MODEL}),
    _S.AWAITING_MAKE_MODEL: frozenset({_S.AWAITING_PLATE}),
    _S.AWAITING_PLATE: frozenset({_S.AWAITING_STAY_OPTION}),
    _S.AWAITING_STAY_OPTION: frozenset({_S.AWAITING_SUMMARY_CONFIRMATION, _S.AWAITING_CUSTOM_NIGHTS}),
    _S.AWAITING_CUSTOM_NIGHTS: frozenset({_S.AWAITING_SUMMARY_CONFIRMATION}),
    _S.AWAITING_SUMMARY_CONFIRMATION: frozenset({_S.AWAITING_PAYMENT}),
    _S.AWAITING_PAYMENT: frozenset(),
    _S.CANCELLED: frozenset(),
    _S.EXPIRED: frozenset(),
    _S.COMPLETED: frozenset(),
}

ALLOWED_TRANSITIONS: Dict[ConversationState, FrozenSet[ConversationState]] = {
    state: (forward | {state} | TERMINAL_STATES) if not state.is_terminal else frozenset({state})
    for state, forward in _FORWARD.items()
}


def is_allowed_transition(current: ConversationState, target: ConversationState) -> bool:
    """Check a state change against the booking flow graph."""
    return target in ALLOWED_TRANSITIONS[current]


class TruckType(str, Enum):
    """Vehicle classes a driver can park."""

    SEMI = "semi"
    BOBTAIL = "bobtail"
    HOTSHOT = "hotshot"
    OTHER = "other"


class StayType(str, Enum):
    """Stay length options."""

    OVERNIGHT = "overnight"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class BookingStatus(str, Enum):
    """Booking payment status."""

    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"


class MessageDirection(str, Enum):
    """SMS log direction."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ScheduledMessageType(str, Enum):
    """Deferred notification kinds."""

    REVIEW_NUDGE = "review_nudge"


class DispatchOutcome(str, Enum):
    """Result of one outbound send attempt."""

    SENT = "sent"
    PERMANENT_FAILURE = "permanent_failure"
    TRANSIENT_FAILURE = "transient_failure"


class GlobalCommand(str, Enum):
    """Keywords recognized ahead of any state dispatch."""

    HELP = "HELP"
    MENU = "MENU"
    DEMO = "DEMO"
    CANCEL = "CANCEL"
    STOP = "STOP"
    RESET = "RESET"
    SUPPORT = "SUPPORT"
    BOOK = "BOOK"

    @classmethod
    def parse(cls, text: str) -> Optional["GlobalCommand"]:
        """Match a whole message (trimmed, case-insensitive) to a command."""
        try:
            return cls((text or "").strip().upper())
        except ValueError:
            return None


class EffectKind(str, Enum):
    """Side effects a state handler can request from the engine."""

    CREATE_BOOKING = "create_booking"
    ALERT_OPERATOR = "alert_operator"


class PaymentEventOutcome(str, Enum):
    """What processing a payment webhook event did."""

    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"
