"""Node functions for the conversation state machine.

One node per conversation state. Each node validates the inbound text for
its state and returns a partial TurnState: reply, conversation updates and
side effects. Nodes only read through the context; the engine writes.
"""

import logging
from typing import Any, Dict, List, Optional

from langchain_core.runnables import RunnableConfig

from domain.enums import BookingStatus, ConversationState, StayType
from domain.models import Effect, LotRecord
from services.context import BookingContext
from services.errors import PaymentGatewayError
from services.pricing import compute_pricing
from services import sms_templates as t
from .state import TurnState


logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 2


def get_context(config: RunnableConfig) -> BookingContext:
    """Collaborators travel in the run config, never as module globals."""
    return config["configurable"]["ctx"]


def _turn(
    node: str,
    reply: Optional[str],
    updates: Optional[Dict[str, Any]] = None,
    effects: Optional[List[Effect]] = None,
) -> dict:
    return {
        "reply": reply,
        "updates": updates or {},
        "effects": effects or [],
        "handled_by": node,
    }


def _is_sold_out(stalls_left: Optional[int]) -> bool:
    return stalls_left is not None and stalls_left <= 0


def _parse_int(text: str) -> Optional[int]:
    value = (text or "").strip()
    return int(value) if value.isascii() and value.isdecimal() else None


# ============================================================================
# LOT SELECTION
# ============================================================================

def location_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_location_or_lot_code: resolve a lot code, slug or city/state."""
    ctx = get_context(config)
    raw = state.inbound_text.strip()

    lots = ctx.lot_resolver.resolve(raw)

    if not lots:
        return _turn("location", t.location_not_found_message())

    if len(lots) == 1:
        lot = lots[0]
        stalls_left = ctx.availability.stalls_left(lot)
        if _is_sold_out(stalls_left):
            return _turn("location", t.sold_out_message(lot.name))

        return _turn(
            "location",
            t.lot_selected_message(lot, stalls_left),
            {
                "location_raw_input": raw,
                "lot_id": lot.id,
                "lot_choice_ids": [],
                "current_state": ConversationState.AWAITING_NAME,
            },
        )

    return _turn(
        "location",
        t.lot_choices_message(lots),
        {
            "location_raw_input": raw,
            "lot_choice_ids": [lot.id for lot in lots],
            "current_state": ConversationState.AWAITING_LOT_CHOICE,
        },
    )


def lot_choice_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_lot_choice: pick one of the numbered lots offered."""
    ctx = get_context(config)
    conversation = state.conversation

    choice = _parse_int(state.inbound_text)
    if choice is None:
        return _turn("lot_choice", t.invalid_lot_choice_message())

    lots = ctx.store.get_lots(conversation.lot_choice_ids)
    if not lots and conversation.location_raw_input:
        lots = ctx.lot_resolver.resolve(conversation.location_raw_input)

    if choice < 1 or choice > len(lots):
        return _turn("lot_choice", t.invalid_lot_choice_message())

    lot = lots[choice - 1]
    stalls_left = ctx.availability.stalls_left(lot)
    if _is_sold_out(stalls_left):
        return _turn("lot_choice", t.sold_out_choice_message(lot.name))

    return _turn(
        "lot_choice",
        t.lot_selected_message(lot, stalls_left),
        {"lot_id": lot.id, "current_state": ConversationState.AWAITING_NAME},
    )


# ============================================================================
# DRIVER AND VEHICLE
# ============================================================================

def name_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_name"""
    name = " ".join(state.inbound_text.split())
    if len(name) < MIN_TEXT_LENGTH:
        return _turn("name", t.name_retry_message())

    return _turn(
        "name",
        t.truck_type_prompt(),
        {"driver_full_name": name, "current_state": ConversationState.AWAITING_TRUCK_TYPE},
    )


def truck_type_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_truck_type: 1-4."""
    truck_type = t.TRUCK_TYPE_OPTIONS.get(state.inbound_text.strip())
    if truck_type is None:
        return _turn("truck_type", t.truck_type_retry_message())

    return _turn(
        "truck_type",
        t.make_model_prompt(),
        {"truck_type": truck_type, "current_state": ConversationState.AWAITING_MAKE_MODEL},
    )


def make_model_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_make_model"""
    make_model = state.inbound_text.strip()
    if len(make_model) < MIN_TEXT_LENGTH:
        return _turn("make_model", t.make_model_retry_message())

    return _turn(
        "make_model",
        t.plate_prompt(),
        {"truck_make_model": make_model, "current_state": ConversationState.AWAITING_PLATE},
    )


def plate_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_plate"""
    plate = state.inbound_text.strip()
    if len(plate) < MIN_TEXT_LENGTH:
        return _turn("plate", t.plate_retry_message())

    return _turn(
        "plate",
        t.stay_option_prompt(),
        {"license_plate_raw": plate, "current_state": ConversationState.AWAITING_STAY_OPTION},
    )


# ============================================================================
# STAY AND SUMMARY
# ============================================================================

def _summary_turn(node: str, state: TurnState, ctx: BookingContext, updates: Dict[str, Any]) -> dict:
    """Quote the stay against the current lot rates and ask for YES/NO."""
    upcoming = state.conversation.with_updates(updates)

    lot: Optional[LotRecord] = ctx.store.get_lot(upcoming.lot_id) if upcoming.lot_id else None
    if lot is None:
        return _turn(
            node,
            t.summary_failed_message(),
            effects=[Effect.alert(
                f"Lot {upcoming.lot_id} missing while building summary for conversation {upcoming.id}"
            )],
        )

    pricing = compute_pricing(lot, upcoming.stay_type, upcoming.nights)
    reply = t.summary_message(
        lot,
        upcoming.driver_full_name,
        upcoming.truck_type,
        upcoming.truck_make_model,
        upcoming.license_plate_raw,
        upcoming.nights,
        pricing.total_cents,
    )
    return _turn(
        node,
        reply,
        {
            **updates,
            "quoted_total_cents": pricing.total_cents,
            "current_state": ConversationState.AWAITING_SUMMARY_CONFIRMATION,
        },
    )


def stay_option_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_stay_option: 1/2/3 fixed stays, 4 asks for a night count."""
    option = state.inbound_text.strip()

    if option == t.CUSTOM_STAY_OPTION:
        return _turn(
            "stay_option",
            t.custom_nights_prompt(),
            {"stay_type": StayType.CUSTOM, "current_state": ConversationState.AWAITING_CUSTOM_NIGHTS},
        )

    if option not in t.STAY_OPTIONS:
        return _turn("stay_option", t.stay_option_retry_message())

    stay_type, nights = t.STAY_OPTIONS[option]
    return _summary_turn(
        "stay_option",
        state,
        get_context(config),
        {"stay_type": stay_type, "nights": nights},
    )


def custom_nights_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_custom_nights: integer 1..max_custom_nights."""
    ctx = get_context(config)
    nights = _parse_int(state.inbound_text)
    if nights is None or not 1 <= nights <= ctx.settings.max_custom_nights:
        return _turn("custom_nights", t.custom_nights_retry_message())

    return _summary_turn(
        "custom_nights",
        state,
        ctx,
        {"stay_type": StayType.CUSTOM, "nights": nights},
    )


def summary_confirmation_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_summary_confirmation: YES books, NO cancels."""
    answer = state.inbound_text.strip().upper()

    if answer in t.SUMMARY_NO:
        return _turn(
            "summary_confirmation",
            t.summary_declined_message(),
            {"current_state": ConversationState.CANCELLED, "is_active": False},
        )

    if answer in t.SUMMARY_YES:
        # The finalizer creates the booking and supplies the reply.
        return _turn("summary_confirmation", None, effects=[Effect.create_booking()])

    return _turn("summary_confirmation", t.summary_retry_message())


# ============================================================================
# PAYMENT
# ============================================================================

def payment_node(state: TurnState, config: RunnableConfig) -> dict:
    """awaiting_payment: resend the checkout link on request, otherwise remind."""
    ctx = get_context(config)
    conversation = state.conversation

    if state.inbound_text.strip().upper() not in t.RESEND_KEYWORDS:
        return _turn("payment", t.payment_reminder_message())

    if conversation.booking_id is None:
        return _turn("payment", t.payment_no_booking_message())

    booking = ctx.store.get_booking(conversation.booking_id)
    if booking is None:
        return _turn(
            "payment",
            t.payment_missing_booking_message(),
            effects=[Effect.alert(
                f"Booking {conversation.booking_id} missing in awaiting_payment for {conversation.driver_phone_e164}"
            )],
        )

    if booking.status == BookingStatus.CONFIRMED:
        return _turn("payment", t.already_confirmed_message(booking))

    if booking.status != BookingStatus.PENDING_PAYMENT or not booking.stripe_session_id:
        return _turn("payment", t.payment_reopen_failed_message())

    try:
        session = ctx.payments.retrieve_session(booking.stripe_session_id)
    except PaymentGatewayError as e:
        logger.warning(
            "Checkout session retrieval failed",
            extra={"booking_id": str(booking.id), "error": str(e)},
        )
        return _turn(
            "payment",
            t.payment_reopen_failed_message(),
            effects=[Effect.alert(f"Error retrieving checkout session for resend: {e}")],
        )

    if not session.url:
        return _turn("payment", t.payment_reopen_failed_message())

    return _turn("payment", t.payment_resend_message(session.url))


# ============================================================================
# TERMINAL
# ============================================================================

def inactive_node(state: TurnState, config: RunnableConfig) -> dict:
    """Terminal states hold no active flow; only BOOK restarts."""
    return _turn("inactive", t.no_conversation_message())
