"""
Scheduled notification runner.

Driven by an external poll (GET /health); nothing here owns a timer.
"""
import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from domain.enums import BookingStatus, MessageDirection
from domain.models import DispatchResult, ScheduledMessageRecord
from services.context import BookingContext
from services import sms_templates as t


logger = logging.getLogger(__name__)


class ScheduledNotificationRunner:
    """Dispatches due scheduled messages and sweeps idle conversations."""

    def __init__(self, context: BookingContext):
        self.ctx = context
        self.store = context.store

    def run_due(self) -> int:
        """
        Dispatch up to `scheduler_batch_limit` due messages.

        Returns:
            Number of messages closed (sent or permanently failed/skipped)
        """
        now = self.ctx.clock()
        due = self.store.list_due_scheduled_messages(now, self.ctx.settings.scheduler_batch_limit)
        closed = 0

        for message in due:
            try:
                if self._dispatch(message):
                    closed += 1
            except Exception as e:
                # Left unsent so the next poll retries it.
                logger.exception("Scheduled message dispatch failed", extra={"message_id": str(message.id)})
                self.ctx.alerts.notify(f"Error sending scheduled message {message.id}: {e}")
                try:
                    self.store.record_scheduled_error(message.id, str(e)[:500])
                except SQLAlchemyError:
                    logger.exception("Could not record scheduled message error")

        if due:
            logger.info("Scheduled messages processed", extra={"due": len(due), "closed": closed})
        return closed

    def _dispatch(self, message: ScheduledMessageRecord) -> bool:
        """Handle one message; True when it is closed for good."""
        lot = self.store.get_lot(message.lot_id)
        review_url = lot.review_url if lot else None
        if not review_url:
            self.store.mark_scheduled_dispatched(message.id, "no review_url on lot")
            return True

        booking = self.store.get_booking(message.booking_id)
        if booking is None:
            self.store.mark_scheduled_dispatched(message.id, "booking not found")
            return True

        if booking.status != BookingStatus.CONFIRMED:
            self.store.mark_scheduled_dispatched(message.id, f"skipped: booking status = {booking.status.value}")
            return True

        body = t.review_nudge_message(message.driver_full_name, lot, review_url)
        result: DispatchResult = self.ctx.messenger.send(message.driver_phone_e164, body)

        logger.info(
            "Scheduled message dispatch",
            extra={"message_id": str(message.id), "outcome": result.outcome.value, "reason": result.reason},
        )

        if not result.marks_dispatched:
            self.store.record_scheduled_error(message.id, result.reason or "transient failure")
            return False

        self.store.mark_scheduled_dispatched(message.id, None if result.ok else result.reason)
        if result.ok:
            self.store.log_message(booking.conversation_id, message.driver_phone_e164, MessageDirection.OUTBOUND, body)
        else:
            self.ctx.alerts.notify(f"Review nudge {message.id} permanently failed: {result.reason}")
        return True

    def expire_idle_conversations(self) -> int:
        """Expire every active conversation idle past the threshold."""
        cutoff = self.ctx.clock() - timedelta(minutes=self.ctx.settings.conversation_idle_minutes)
        expired = self.store.expire_idle_conversations(cutoff)
        if expired:
            logger.info("Idle conversations expired", extra={"count": expired})
        return expired
