"""Tests for scheduled review nudges and idle expiry sweeps."""
import pytest

from domain.enums import ConversationState, ScheduledMessageType
from domain.models import DispatchResult
from tests.conftest import DRIVER_PHONE, OPERATOR_PHONE


@pytest.fixture
def confirmed_booking(book_to_payment, finalizer, checkout_event):
    """A paid booking with its review nudge queued."""
    def _confirm():
        booking = book_to_payment()
        finalizer.handle_checkout_event(checkout_event(booking.stripe_session_id))
        return booking
    return _confirm


def nudges_sent(messenger):
    return [text for text in messenger.sent_to(DRIVER_PHONE) if "leave a review" in text]


@pytest.mark.integration
class TestReviewNudges:
    """Test dispatching due review nudges."""

    def test_not_due_yet(self, confirmed_booking, runner, messenger, lot):
        """Test nothing goes out before send_at."""
        confirmed_booking()

        assert runner.run_due() == 0
        assert nudges_sent(messenger) == []

    def test_sent_when_due(self, confirmed_booking, runner, messenger, context, clock, lot):
        """Test a due nudge is sent once and closed."""
        booking = confirmed_booking()
        clock.advance(hours=27)

        assert runner.run_due() == 1
        assert runner.run_due() == 0

        sent = nudges_sent(messenger)
        assert len(sent) == 1
        assert sent[0].startswith("Hey Jane - quick favor?")
        assert "Review: https://reviews.example/bzn1" in sent[0]

        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.sent_at is not None
        assert scheduled.last_error is None

        outbound = [m.body for m in context.store.list_messages(DRIVER_PHONE)]
        assert sent[0] in outbound

    def test_permanent_failure_closes(self, confirmed_booking, runner, messenger, context, clock, lot):
        """Test a permanent failure is not retried and alerts the operator."""
        booking = confirmed_booking()
        clock.advance(hours=27)
        messenger.result = DispatchResult.permanent("twilio 400 (code 21610): unsubscribed")

        assert runner.run_due() == 1

        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.sent_at is not None
        assert "21610" in scheduled.last_error
        assert any("permanently failed" in text for text in messenger.sent_to(OPERATOR_PHONE))

    def test_transient_failure_retries(self, confirmed_booking, runner, messenger, context, clock, lot):
        """Test a transient failure stays due and goes out on a later poll."""
        booking = confirmed_booking()
        clock.advance(hours=27)
        messenger.result = DispatchResult.transient("twilio 503")

        assert runner.run_due() == 0
        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.sent_at is None
        assert scheduled.last_error == "twilio 503"

        messenger.result = DispatchResult.sent()
        assert runner.run_due() == 1
        assert context.store.list_scheduled_messages(booking.id)[0].sent_at is not None

    def test_exception_leaves_message_unsent(self, confirmed_booking, runner, messenger, context, clock, lot):
        """Test an unexpected error records the error and keeps the message due."""
        booking = confirmed_booking()
        clock.advance(hours=27)
        messenger.raise_error = RuntimeError("boom")

        assert runner.run_due() == 0

        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.sent_at is None
        assert scheduled.last_error == "boom"

    def test_lot_without_review_url(self, confirmed_booking, runner, messenger, context, clock, make_lot):
        """Test a lot with no review link closes the nudge without sending."""
        make_lot(review_url=None)
        booking = confirmed_booking()
        clock.advance(hours=27)

        assert runner.run_due() == 1
        assert nudges_sent(messenger) == []
        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.sent_at is not None
        assert scheduled.last_error == "no review_url on lot"

    def test_unconfirmed_booking_skipped(self, book_to_payment, runner, messenger, context, clock, lot):
        """Test a nudge for an unpaid booking is closed without sending."""
        booking = book_to_payment()
        context.store.enqueue_scheduled_message(booking, ScheduledMessageType.REVIEW_NUDGE, clock())

        assert runner.run_due() == 1
        assert nudges_sent(messenger) == []
        scheduled = context.store.list_scheduled_messages(booking.id)[0]
        assert scheduled.last_error == "skipped: booking status = pending_payment"

    def test_batch_limit(self, book_to_payment, runner, context, clock, lot):
        """Test one poll dispatches at most the batch limit."""
        booking = book_to_payment()
        for _ in range(3):
            context.store.enqueue_scheduled_message(booking, ScheduledMessageType.REVIEW_NUDGE, clock())
        context.settings.scheduler_batch_limit = 2

        assert runner.run_due() == 2
        assert runner.run_due() == 1


@pytest.mark.integration
class TestIdleSweep:
    """Test the poll-driven idle expiry sweep."""

    def test_expires_idle_conversations(self, converse, runner, context, clock, lot):
        """Test conversations idle past the window are expired."""
        converse("BOOK", "BZN1")
        converse("BOOK", phone="+14065550111")
        clock.advance(minutes=31)

        assert runner.expire_idle_conversations() == 2
        assert context.store.get_active_conversation(DRIVER_PHONE) is None
        assert context.store.count_active_conversations() == 0

    def test_recent_conversations_survive(self, converse, runner, context, clock, lot):
        """Test active conversations inside the window are kept."""
        converse("BOOK", "BZN1")
        clock.advance(minutes=10)

        assert runner.expire_idle_conversations() == 0
        assert context.store.get_active_conversation(DRIVER_PHONE).current_state == ConversationState.AWAITING_NAME
