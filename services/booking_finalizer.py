"""
Booking finalizer: turns a confirmed summary into a payable booking, and a
completed checkout into a confirmed booking.
"""
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from core.logging import LogContext
from core.utils_datetime import (
    compute_review_send_at,
    get_timezone,
    service_day,
    stay_date_range,
)
from domain.enums import (
    BookingStatus,
    ConversationState,
    MessageDirection,
    PaymentEventOutcome,
    ScheduledMessageType,
    StayType,
    is_allowed_transition,
)
from domain.models import BookingRecord
from services.context import BookingContext
from services.errors import InvalidTransitionError, LookupFailure, PaymentGatewayError
from services.pricing import compute_pricing
from services import sms_templates as t


logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class BookingFinalizer:
    """Creates bookings and confirms them when payment completes."""

    def __init__(self, context: BookingContext):
        self.ctx = context
        self.store = context.store

    # ========================================================================
    # CREATE
    # ========================================================================

    def create_booking(self, conversation_id: UUID) -> str:
        """
        Create a pending booking and a checkout session for a conversation.

        The conversation and lot are reloaded and the price recomputed from
        current lot rates, so nothing is taken from an earlier quote.

        Args:
            conversation_id: Conversation that just answered YES

        Returns:
            Reply for the driver: the payment link, or a generic retry message
        """
        try:
            conversation = self.store.get_conversation(conversation_id)
            if conversation is None:
                raise LookupFailure("conversation", conversation_id)
            if conversation.lot_id is None:
                raise LookupFailure("lot", None)
            lot = self.store.get_lot(conversation.lot_id)
            if lot is None:
                raise LookupFailure("lot", conversation.lot_id)
        except LookupFailure as e:
            logger.error("Booking creation lookup failed", extra={"conversation_id": str(conversation_id)})
            self.ctx.alerts.notify(f"Error creating booking for conversation {conversation_id}: {e}")
            return t.booking_failed_message()

        if not is_allowed_transition(conversation.current_state, ConversationState.AWAITING_PAYMENT):
            raise InvalidTransitionError(conversation.current_state.value, ConversationState.AWAITING_PAYMENT.value)

        stay_type = conversation.stay_type or StayType.OVERNIGHT
        nights = conversation.nights or 1
        pricing = compute_pricing(lot, stay_type, nights)

        first_day = service_day(
            self.ctx.clock(),
            get_timezone(lot.timezone),
            self.ctx.settings.service_day_rollover_hour,
        )
        start_date, end_date = stay_date_range(first_day, nights)

        booking = self.store.create_booking(
            conversation_id=conversation.id,
            lot_id=lot.id,
            driver_phone_e164=conversation.driver_phone_e164,
            driver_full_name=conversation.driver_full_name,
            truck_type=conversation.truck_type,
            truck_make_model=conversation.truck_make_model,
            license_plate_raw=conversation.license_plate_raw,
            stay_type=stay_type,
            nights=nights,
            start_date=start_date,
            end_date=end_date,
            nightly_rate_cents=pricing.nightly_rate_cents,
            weekly_rate_cents=lot.weekly_rate_cents,
            monthly_rate_cents=lot.monthly_rate_cents,
            subtotal_cents=pricing.subtotal_cents,
            deposit_hold_cents=pricing.deposit_hold_cents,
            total_cents=pricing.total_cents,
            currency=self.ctx.settings.currency,
            status=BookingStatus.PENDING_PAYMENT,
        )

        try:
            session = self.ctx.payments.create_session(
                amount_cents=pricing.total_cents,
                currency=self.ctx.settings.currency,
                description=f"{t.lot_label(lot.name, lot.lot_code)} - {t.plural_nights(nights)}",
                metadata={
                    "booking_id": str(booking.id),
                    "conversation_id": str(conversation.id),
                    "lot_id": str(lot.id),
                },
                customer_phone=conversation.driver_phone_e164,
            )
            if not session.url:
                raise PaymentGatewayError(f"Checkout session {session.id} has no URL")
        except PaymentGatewayError as e:
            logger.error(
                "Checkout session creation failed",
                extra={"booking_id": str(booking.id), "error": str(e)},
            )
            self.ctx.alerts.notify(f"Error creating checkout session for booking {booking.id}: {e}")
            return t.booking_failed_message()

        self.store.update_booking(booking.id, stripe_session_id=session.id)
        self.store.update_conversation(
            conversation.id,
            current_state=ConversationState.AWAITING_PAYMENT,
            booking_id=booking.id,
            quoted_total_cents=pricing.total_cents,
        )
        logger.info(
            "Checkout session created",
            extra={
                "booking_id": str(booking.id),
                "conversation_id": str(conversation.id),
                "total_cents": pricing.total_cents,
            },
        )
        return t.payment_link_message(lot, nights, pricing.total_cents, session.url)

    # ========================================================================
    # CONFIRM
    # ========================================================================

    def find_booking_for_event(self, checkout: Dict[str, Any]) -> Optional[BookingRecord]:
        """Match by stored session id, then by the booking id in metadata."""
        session_id = checkout.get("id")
        if session_id:
            booking = self.store.get_booking_by_session_id(session_id)
            if booking is not None:
                return booking

        booking_id = (checkout.get("metadata") or {}).get("booking_id")
        if not booking_id:
            return None
        try:
            return self.store.get_booking(UUID(str(booking_id)))
        except ValueError:
            logger.warning("Malformed booking_id in checkout metadata", extra={"booking_id": booking_id})
            return None

    def handle_checkout_event(self, event: Dict[str, Any]) -> PaymentEventOutcome:
        """
        Apply a verified payment event.

        Idempotent: a booking already confirmed short-circuits with no side
        effects, so redelivery sends nothing twice.
        """
        event_type = event.get("type")
        if event_type != CHECKOUT_COMPLETED:
            logger.info("Ignoring payment event", extra={"event_type": event_type, "event_id": event.get("id")})
            return PaymentEventOutcome.IGNORED

        checkout = (event.get("data") or {}).get("object") or {}
        booking = self.find_booking_for_event(checkout)

        if booking is None:
            logger.warning(
                "No booking for completed checkout",
                extra={"session_id": checkout.get("id"), "event_id": event.get("id")},
            )
            self.ctx.alerts.notify(
                f"Checkout completed but no booking matched (session {checkout.get('id')}, "
                f"metadata booking_id {(checkout.get('metadata') or {}).get('booking_id')})"
            )
            return PaymentEventOutcome.NOT_FOUND

        with LogContext(logger, booking_id=str(booking.id), event_id=event.get("id")) as log:
            if booking.status == BookingStatus.CONFIRMED:
                log.log("info", "Duplicate payment confirmation ignored")
                return PaymentEventOutcome.DUPLICATE

            now = self.ctx.clock()
            booking = self.store.update_booking(
                booking.id,
                status=BookingStatus.CONFIRMED,
                paid_at=now,
                stripe_session_id=booking.stripe_session_id or checkout.get("id"),
                stripe_payment_intent_id=checkout.get("payment_intent"),
                stripe_customer_id=checkout.get("customer"),
            )
            log.log("info", "Booking confirmed")

            self._complete_conversation(booking)
            self._send_confirmation(booking)

            lot = self.store.get_lot(booking.lot_id)
            send_at = compute_review_send_at(
                now,
                get_timezone(lot.timezone if lot else None),
                hour_local=self.ctx.settings.review_nudge_hour_local,
                rollover_hour=self.ctx.settings.service_day_rollover_hour,
                test_delay_minutes=self.ctx.settings.review_nudge_test_delay_minutes,
            )
            self.store.enqueue_scheduled_message(booking, ScheduledMessageType.REVIEW_NUDGE, send_at)

        return PaymentEventOutcome.CONFIRMED

    def _complete_conversation(self, booking: BookingRecord) -> None:
        conversation = self.store.get_conversation(booking.conversation_id)
        if conversation is None:
            self.ctx.alerts.notify(f"Conversation {booking.conversation_id} missing for confirmed booking {booking.id}")
            return

        if conversation.current_state.is_terminal:
            logger.info(
                "Payment completed for a closed conversation",
                extra={"conversation_id": str(conversation.id), "state": conversation.current_state.value},
            )
            return

        self.store.update_conversation(
            conversation.id,
            current_state=ConversationState.COMPLETED,
            is_active=False,
        )
        logger.info(
            "Conversation state change",
            extra={
                "conversation_id": str(conversation.id),
                "from_state": conversation.current_state.value,
                "to_state": ConversationState.COMPLETED.value,
            },
        )

    def _send_confirmation(self, booking: BookingRecord) -> None:
        """Text the confirmation; a failed send is alerted, never raised."""
        lot = self.store.get_lot(booking.lot_id)
        if lot is None:
            self.ctx.alerts.notify(f"Lot {booking.lot_id} missing; no confirmation sent for booking {booking.id}")
            return

        body = t.confirmation_message(lot, booking.start_date, booking.end_date, booking.license_plate_raw)
        result = self.ctx.messenger.send(booking.driver_phone_e164, body)
        if not result.ok:
            self.ctx.alerts.notify(
                f"Confirmation SMS for booking {booking.id} not delivered: {result.reason}"
            )
        self.store.log_message(booking.conversation_id, booking.driver_phone_e164, MessageDirection.OUTBOUND, body)
