"""Golden-flow tests for the SMS booking conversation."""
import logging

import pytest

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from db.models_sqlalchemy import Conversation
from domain.enums import BookingStatus, ConversationState, MessageDirection, StayType, TruckType
from graph.build_graph import (
    STATE_ROUTES,
    IncompleteStateRoutingError,
    build_graph,
    check_routes,
)
from services.conversation_engine import ConversationEngine
from services.errors import InvalidTransitionError
from services import sms_templates as t
from tests.conftest import DRIVER_PHONE, OPERATOR_PHONE


OTHER_PHONE = "+14065550111"


def active_state(context, phone=DRIVER_PHONE):
    conversation = context.store.get_active_conversation(phone)
    return conversation.current_state if conversation else None


@pytest.mark.integration
class TestHappyPath:
    """Test a full booking from BOOK to the payment link."""

    def test_book_to_payment_link(self, converse, context, lot, payments):
        """Test each step prompts for the next and the last reply is the payment link."""
        replies = converse(
            "BOOK",
            "BZN1",
            "Jane Driver",
            "1",
            "Freightliner Cascadia",
            "MT 7-XYZ456",
            "1",
            "YES",
        )

        assert replies[0] == t.location_prompt()
        assert "You're booking: Bozeman Yard – I-90 Exit 306." in replies[1]
        assert "Stalls left tonight: 10" in replies[1]
        assert replies[2] == t.truck_type_prompt()
        assert replies[3] == t.make_model_prompt()
        assert replies[4] == t.plate_prompt()
        assert replies[5] == t.stay_option_prompt()
        assert "• Total: $25.00" in replies[6]
        assert "• Truck: Semi - Freightliner Cascadia" in replies[6]
        assert replies[6].endswith(t.COMMANDS_FOOTER)
        assert "https://checkout.example/pay/1" in replies[7]
        assert "$25" in replies[7]

    def test_city_state_single_match(self, converse, context, lot):
        """Test a city/state reply matching one lot goes straight to the name prompt."""
        phone = "+15551234567"

        replies = converse("BOOK", "Bozeman MT", "Jane Doe", "1", "Freightliner Cascadia", "MT 7-XYZ456", "1", "YES", phone=phone)

        assert "Bozeman Yard" in replies[1]
        assert replies[1].endswith("What's your first and last name?")
        assert "• Stay: 1 night\n" in replies[6]
        assert "• Total: $25.00" in replies[6]
        assert "https://checkout.example/pay/1" in replies[7]

        conversation = context.store.get_active_conversation(phone)
        assert conversation.current_state == ConversationState.AWAITING_PAYMENT
        assert context.store.get_booking(conversation.booking_id).status == BookingStatus.PENDING_PAYMENT

    def test_pending_booking_snapshot(self, book_to_payment, context, lot, payments):
        """Test the booking carries the driver, vehicle, stay and price."""
        booking = book_to_payment()

        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.lot_id == lot.id
        assert booking.driver_full_name == "Jane Driver"
        assert booking.truck_type == TruckType.SEMI
        assert booking.truck_make_model == "Freightliner Cascadia"
        assert booking.license_plate_raw == "MT 7-XYZ456"
        assert booking.stay_type == StayType.OVERNIGHT
        assert booking.nights == 1
        assert booking.total_cents == 2500
        assert booking.stripe_session_id == payments.created[0]["session"].id
        assert payments.created[0]["metadata"]["booking_id"] == str(booking.id)

        conversation = context.store.get_active_conversation(DRIVER_PHONE)
        assert conversation.current_state == ConversationState.AWAITING_PAYMENT
        assert conversation.booking_id == booking.id
        assert conversation.quoted_total_cents == 2500

    def test_weekly_stay_uses_weekly_rate(self, book_to_payment, lot):
        """Test option 2 books seven nights at the weekly rate."""
        booking = book_to_payment(stay="2")

        assert booking.stay_type == StayType.WEEKLY
        assert booking.nights == 7
        assert booking.total_cents == 15000
        assert (booking.end_date - booking.start_date).days == 7

    def test_every_message_is_logged(self, book_to_payment, context, lot):
        """Test inbound and outbound messages are all in the SMS log, payment link included."""
        book_to_payment()

        messages = context.store.list_messages(DRIVER_PHONE)
        inbound = [m for m in messages if m.direction == MessageDirection.INBOUND.value]
        outbound = [m for m in messages if m.direction == MessageDirection.OUTBOUND.value]

        assert len(inbound) == 8
        assert len(outbound) == 8
        assert any("https://checkout.example/pay/1" in m.body for m in outbound)
        assert inbound[0].raw_payload is not None

    def test_booking_reduces_stalls_left(self, book_to_payment, converse, lot):
        """Test a fresh pending booking holds a stall for the next driver."""
        book_to_payment()

        replies = converse("BOOK", "BZN1", phone=OTHER_PHONE)

        assert "Stalls left tonight: 9" in replies[1]


@pytest.mark.integration
class TestLotSelection:
    """Test location resolution in the conversation."""

    def test_multiple_matches_then_choice(self, converse, context, make_lot):
        """Test a list is offered and a number picks from it."""
        make_lot(name="Billings East", lot_code="BIL1", slug="billings-east", city="Billings", region_label=None)
        second = make_lot(name="Billings North", lot_code="BIL2", slug="billings-north", city="Billings")
        make_lot(name="Billings West", lot_code="BIL3", slug="billings-west", city="Billings")

        replies = converse("BOOK", "Billings MT", "2")

        assert "1) Billings East\n" in replies[1]
        assert "2) Billings North – I-90 Exit 306" in replies[1]
        assert "3) Billings West" in replies[1]
        assert "Billings North" in replies[2]

        conversation = context.store.get_active_conversation(DRIVER_PHONE)
        assert conversation.lot_id == second.id
        assert conversation.current_state == ConversationState.AWAITING_NAME

    def test_out_of_range_choice_reprompts(self, converse, context, make_lot):
        """Test a number outside the list keeps the driver choosing."""
        make_lot(name="Billings East", lot_code="BIL1", slug="billings-east", city="Billings")
        make_lot(name="Billings West", lot_code="BIL2", slug="billings-west", city="Billings")

        replies = converse("BOOK", "Billings", "9", "two")

        assert replies[2] == t.invalid_lot_choice_message()
        assert replies[3] == t.invalid_lot_choice_message()
        assert active_state(context) == ConversationState.AWAITING_LOT_CHOICE

    def test_unknown_location(self, converse, context, lot):
        """Test no match keeps the location prompt."""
        replies = converse("BOOK", "Nowhere ZZ")

        assert replies[1] == t.location_not_found_message()
        assert active_state(context) == ConversationState.AWAITING_LOCATION_OR_LOT_CODE

    def test_sold_out_lot(self, converse, context, make_lot):
        """Test a lot with no stalls left is refused."""
        make_lot(capacity_total=0)

        replies = converse("BOOK", "BZN1")

        assert "sold out tonight" in replies[1]
        assert active_state(context) == ConversationState.AWAITING_LOCATION_OR_LOT_CODE

    def test_unknown_capacity_is_bookable(self, converse, context, make_lot):
        """Test a lot without capacity proceeds and shows no count."""
        make_lot(capacity_total=None)

        replies = converse("BOOK", "BZN1")

        assert "Stalls left" not in replies[1]
        assert active_state(context) == ConversationState.AWAITING_NAME

    def test_sold_out_choice_keeps_list(self, converse, context, make_lot):
        """Test picking a sold-out lot from the list asks for another number."""
        make_lot(name="Billings East", lot_code="BIL1", slug="billings-east", city="Billings", capacity_total=0)
        second = make_lot(name="Billings West", lot_code="BIL2", slug="billings-west", city="Billings")

        replies = converse("BOOK", "Billings", "1")

        assert replies[2] == t.sold_out_choice_message("Billings East")
        assert active_state(context) == ConversationState.AWAITING_LOT_CHOICE

        converse("2")

        conversation = context.store.get_active_conversation(DRIVER_PHONE)
        assert conversation.lot_id == second.id
        assert conversation.current_state == ConversationState.AWAITING_NAME

    @pytest.mark.parametrize("answer", ["¹", "²", "1.5", "-1", "1_0"])
    def test_non_ascii_or_signed_choice_reprompts(self, converse, context, make_lot, answer):
        """Test digit-like characters are a bad choice, not an error."""
        make_lot(name="Billings East", lot_code="BIL1", slug="billings-east", city="Billings")
        make_lot(name="Billings West", lot_code="BIL2", slug="billings-west", city="Billings")

        replies = converse("BOOK", "Billings", answer)

        assert replies[2] == t.invalid_lot_choice_message()
        assert active_state(context) == ConversationState.AWAITING_LOT_CHOICE

    def test_failing_capacity_query_proceeds(self, converse, context, lot, monkeypatch):
        """Test a broken stall count is treated as unknown and the driver continues."""
        def broken_count(*args, **kwargs):
            raise OperationalError("SELECT count", {}, Exception("database is locked"))

        monkeypatch.setattr(context.store, "count_booked_stalls", broken_count)

        replies = converse("BOOK", "BZN1")

        assert "Stalls left" not in replies[1]
        assert active_state(context) == ConversationState.AWAITING_NAME

    def test_stale_pending_booking_frees_stall(self, book_to_payment, converse, clock, make_lot):
        """Test an abandoned payment link stops holding the last stall."""
        make_lot(capacity_total=1)
        book_to_payment()

        assert "sold out tonight" in converse("BOOK", "BZN1", phone=OTHER_PHONE)[1]

        clock.advance(minutes=31)

        assert "Stalls left tonight: 1" in converse("BOOK", "BZN1", phone=OTHER_PHONE)[1]


@pytest.mark.integration
class TestValidation:
    """Test re-prompts on invalid answers."""

    def test_invalid_answers_reprompt(self, converse, context, lot):
        """Test each step rejects bad input and stays put."""
        replies = converse("BOOK", "BZN1", "J", "Jane Driver", "7", "2", "X", "Kenworth T680", "", "MT 123")

        assert replies[2] == t.name_retry_message()
        assert replies[4] == t.truck_type_retry_message()
        assert replies[6] == t.make_model_retry_message()
        assert replies[8] == t.plate_retry_message()
        assert active_state(context) == ConversationState.AWAITING_STAY_OPTION

        conversation = context.store.get_active_conversation(DRIVER_PHONE)
        assert conversation.truck_type == TruckType.BOBTAIL

    def test_custom_nights(self, book_to_summary, converse, context, lot):
        """Test option 4 asks for nights and validates the range."""
        replies = book_to_summary(stay="4")
        assert replies[-1] == t.custom_nights_prompt()

        replies = converse("0", "91", "abc", "3")

        assert replies[0] == t.custom_nights_retry_message()
        assert replies[1] == t.custom_nights_retry_message()
        assert replies[2] == t.custom_nights_retry_message()
        assert "• Stay: 3 nights" in replies[3]
        assert "• Total: $75.00" in replies[3]

        conversation = context.store.get_active_conversation(DRIVER_PHONE)
        assert conversation.stay_type == StayType.CUSTOM
        assert conversation.nights == 3
        assert conversation.current_state == ConversationState.AWAITING_SUMMARY_CONFIRMATION

    def test_superscript_nights_reprompts(self, book_to_summary, converse, context, lot):
        """Test a digit-like character for nights re-asks instead of failing."""
        book_to_summary(stay="4")

        replies = converse("²")

        assert replies[0] == t.custom_nights_retry_message()
        assert active_state(context) == ConversationState.AWAITING_CUSTOM_NIGHTS

    def test_invalid_stay_option(self, book_to_summary, context, lot):
        """Test an unknown stay option re-prompts."""
        replies = book_to_summary(stay="5")

        assert replies[-1] == t.stay_option_retry_message()
        assert active_state(context) == ConversationState.AWAITING_STAY_OPTION

    def test_summary_needs_yes_or_no(self, book_to_summary, converse, context, lot):
        """Test anything other than YES/NO re-asks."""
        book_to_summary()

        assert converse("maybe") == [t.summary_retry_message()]
        assert active_state(context) == ConversationState.AWAITING_SUMMARY_CONFIRMATION

    def test_no_cancels(self, book_to_summary, converse, context, lot, payments):
        """Test NO cancels without creating a booking."""
        book_to_summary()

        replies = converse("no", "hello")

        assert replies[0] == t.summary_declined_message()
        assert replies[1] == t.no_conversation_message()
        assert context.store.get_active_conversation(DRIVER_PHONE) is None
        assert payments.created == []

    def test_checkout_failure_keeps_summary(self, book_to_summary, converse, context, lot, payments, messenger):
        """Test a failed checkout replies generically and alerts the operator."""
        book_to_summary()
        payments.fail_create = True

        replies = converse("YES")

        assert replies == [t.booking_failed_message()]
        assert active_state(context) == ConversationState.AWAITING_SUMMARY_CONFIRMATION
        assert len(messenger.sent_to(OPERATOR_PHONE)) == 1


@pytest.mark.integration
class TestAwaitingPayment:
    """Test messages while a payment link is outstanding."""

    def test_reminder(self, book_to_payment, converse, lot):
        """Test free text gets a reminder."""
        book_to_payment()

        assert converse("when?") == [t.payment_reminder_message()]

    def test_resend_link(self, book_to_payment, converse, lot):
        """Test LINK resends the existing checkout URL."""
        book_to_payment()

        replies = converse("link")

        assert replies == [t.payment_resend_message("https://checkout.example/pay/1")]

    def test_resend_failure_alerts(self, book_to_payment, converse, lot, payments, messenger):
        """Test a failed session lookup tells the driver to reset and alerts."""
        book_to_payment()
        payments.fail_retrieve = True

        assert converse("LINK") == [t.payment_reopen_failed_message()]
        assert len(messenger.sent_to(OPERATOR_PHONE)) == 1


@pytest.mark.integration
class TestConversationLifecycle:
    """Test expiry, restarts and the single-active-conversation rule."""

    def test_idle_conversation_expires(self, converse, context, clock, db_session, lot):
        """Test a reply after the idle window closes the conversation."""
        converse("BOOK", "BZN1")
        clock.advance(minutes=31)

        replies = converse("Jane Driver")

        assert replies == [t.expired_message()]
        assert context.store.get_active_conversation(DRIVER_PHONE) is None
        row = db_session.scalars(select(Conversation)).one()
        assert row.current_state == ConversationState.EXPIRED.value

    def test_activity_within_window_keeps_conversation(self, converse, context, clock, lot):
        """Test each inbound message resets the idle timer."""
        converse("BOOK", "BZN1")
        clock.advance(minutes=20)
        converse("Jane Driver")
        clock.advance(minutes=20)

        converse("1")

        assert active_state(context) == ConversationState.AWAITING_MAKE_MODEL

    def test_book_mid_flow_restarts(self, converse, context, db_session, lot):
        """Test BOOK abandons the current flow and starts over."""
        converse("BOOK", "BZN1", "Jane Driver")

        replies = converse("book")

        assert replies == [t.location_prompt()]
        assert active_state(context) == ConversationState.AWAITING_LOCATION_OR_LOT_CODE
        states = sorted(row.current_state for row in db_session.scalars(select(Conversation)))
        assert states == sorted([ConversationState.AWAITING_LOCATION_OR_LOT_CODE.value, ConversationState.CANCELLED.value])

    def test_at_most_one_active_conversation(self, converse, db_session, lot):
        """Test repeated BOOKs leave exactly one active conversation per phone."""
        converse("BOOK", "BOOK", "BOOK")
        converse("BOOK", phone=OTHER_PHONE)

        active = db_session.scalars(
            select(Conversation).where(Conversation.driver_phone_e164 == DRIVER_PHONE, Conversation.is_active.is_(True))
        ).all()
        assert len(active) == 1

    def test_message_without_conversation(self, converse, db_session):
        """Test text with no active conversation asks for BOOK and creates nothing."""
        assert converse("hi") == [t.no_conversation_message()]
        assert db_session.scalars(select(Conversation)).all() == []


@pytest.mark.integration
class TestGlobalCommands:
    """Test keywords handled ahead of the state machine."""

    def test_help_keeps_state(self, converse, context, lot):
        """Test HELP replies without touching the flow."""
        converse("BOOK", "BZN1")

        assert converse(" help ") == [t.help_message()]
        assert active_state(context) == ConversationState.AWAITING_NAME

    def test_menu_and_demo(self, converse):
        """Test MENU and DEMO reply with their copy."""
        assert converse("MENU", "demo") == [t.menu_message(), t.demo_message()]

    @pytest.mark.parametrize("command", ["CANCEL", "STOP"])
    def test_cancel_deactivates(self, command, converse, context, db_session, lot):
        """Test CANCEL and STOP close the active conversation."""
        converse("BOOK", "BZN1")

        assert converse(command) == [t.cancelled_message()]
        assert context.store.get_active_conversation(DRIVER_PHONE) is None
        row = db_session.scalars(select(Conversation)).one()
        assert row.current_state == ConversationState.CANCELLED.value

    def test_reset(self, converse, context, lot):
        """Test RESET clears the flow."""
        converse("BOOK", "BZN1")

        assert converse("RESET") == [t.reset_message()]
        assert context.store.get_active_conversation(DRIVER_PHONE) is None

    def test_support_alerts_operator(self, converse, messenger):
        """Test SUPPORT forwards to the operator phone."""
        assert converse("SUPPORT") == [t.support_ack_message()]

        alerts = messenger.sent_to(OPERATOR_PHONE)
        assert len(alerts) == 1
        assert DRIVER_PHONE in alerts[0]

    def test_support_without_alert_phone(self, converse, context, messenger, caplog):
        """Test SUPPORT falls back to email but still raises the alert in the logs."""
        context.settings.alert_phone_e164 = None

        with caplog.at_level(logging.WARNING, logger="services.alerts"):
            assert converse("SUPPORT") == [t.support_fallback_message()]

        assert messenger.sent == []
        alerts = [r for r in caplog.records if r.getMessage() == "Operator alert"]
        assert len(alerts) == 1
        assert alerts[0].alert.startswith("Support text from")

    def test_command_must_be_whole_message(self, converse, context, lot):
        """Test a keyword inside a sentence is ordinary text."""
        converse("BOOK")

        replies = converse("help me book")

        assert replies == [t.location_not_found_message()]


@pytest.mark.unit
class TestTransitions:
    """Test the state transition guard and graph routing."""

    def test_forward_transition_allowed(self):
        """Test a step the flow allows passes."""
        ConversationEngine.check_transition(
            ConversationState.AWAITING_NAME, ConversationState.AWAITING_TRUCK_TYPE
        )

    def test_any_state_may_terminate(self):
        """Test non-terminal states can always be cancelled."""
        ConversationEngine.check_transition(ConversationState.AWAITING_PLATE, ConversationState.CANCELLED)

    def test_skipping_ahead_is_rejected(self):
        """Test a jump the flow does not allow raises."""
        with pytest.raises(InvalidTransitionError):
            ConversationEngine.check_transition(
                ConversationState.AWAITING_NAME, ConversationState.AWAITING_PAYMENT
            )

    def test_terminal_states_are_final(self):
        """Test nothing leaves a terminal state."""
        with pytest.raises(InvalidTransitionError):
            ConversationEngine.check_transition(
                ConversationState.COMPLETED, ConversationState.AWAITING_PAYMENT
            )

    def test_every_state_is_routed(self):
        """Test the graph routes every conversation state."""
        check_routes()
        assert build_graph() is not None

    def test_missing_route_is_detected(self):
        """Test a routing table missing a state is refused."""
        routes = dict(STATE_ROUTES)
        routes.pop(ConversationState.AWAITING_PLATE)

        with pytest.raises(IncompleteStateRoutingError):
            check_routes(routes)


class _JumpingGraph:
    """Graph stand-in whose handler jumps straight to awaiting_payment."""

    def invoke(self, state, config=None):
        return {
            "conversation": state.conversation,
            "inbound_text": state.inbound_text,
            "reply": "jumped",
            "updates": {"current_state": ConversationState.AWAITING_PAYMENT},
            "effects": [],
            "handled_by": "jump",
        }


@pytest.mark.integration
class TestInvalidTransitionNotWritten:
    """Test a rejected transition leaves the conversation untouched."""

    def test_rejected_before_write(self, converse, context, lot):
        """Test the engine raises and the state stays where it was."""
        converse("BOOK", "BZN1")
        engine = ConversationEngine(context, graph=_JumpingGraph())

        with pytest.raises(InvalidTransitionError):
            engine.handle_inbound(DRIVER_PHONE, "Jane Driver")

        assert active_state(context) == ConversationState.AWAITING_NAME
