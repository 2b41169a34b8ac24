"""
Conversation store: the only code that touches the ORM session.

Every write commits immediately; a failing write rolls the session back and
re-raises. Reads return pydantic records so callers never hold live ORM rows.
"""
import json
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.utils_datetime import get_current_datetime
from db.models_sqlalchemy import Booking, Conversation, Lot, ScheduledMessage, SmsMessage
from domain.enums import BookingStatus, ConversationState, MessageDirection, ScheduledMessageType
from domain.models import BookingRecord, ConversationSnapshot, LotRecord, ScheduledMessageRecord
from services.errors import LookupFailure


logger = logging.getLogger(__name__)

RAW_PAYLOAD_MAX_CHARS = 8000

Clock = Callable[[], datetime]


def _column_value(value: Any) -> Any:
    """Convert domain values into what the columns store."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [str(v) if isinstance(v, UUID) else v for v in value]
    return value


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ConversationStore:
    """Persistence for conversations, lots, bookings, the SMS log and scheduled messages."""

    def __init__(self, session: Session, clock: Clock = get_current_datetime):
        self.session = session
        self.clock = clock

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error during {action}: {e}")
            self.session.rollback()
            raise

    def _bulk_update(self, statement, action: str) -> int:
        """Run an UPDATE, commit, and drop any cached rows it may have changed."""
        try:
            result = self.session.execute(statement.execution_options(synchronize_session=False))
        except SQLAlchemyError as e:
            logger.error(f"Error during {action}: {e}")
            self.session.rollback()
            raise
        self._commit(action)
        self.session.expire_all()
        return result.rowcount or 0

    # ========================================================================
    # CONVERSATIONS
    # ========================================================================

    def get_active_conversation(self, phone: str) -> Optional[ConversationSnapshot]:
        """Newest active conversation for a phone, if any."""
        row = self.session.scalars(
            select(Conversation)
            .where(Conversation.driver_phone_e164 == phone, Conversation.is_active.is_(True))
            .order_by(Conversation.created_at.desc())
            .limit(1)
        ).first()
        return ConversationSnapshot.model_validate(row) if row else None

    def get_conversation(self, conversation_id: UUID) -> Optional[ConversationSnapshot]:
        row = self.session.get(Conversation, conversation_id)
        return ConversationSnapshot.model_validate(row) if row else None

    def create_conversation(self, phone: str) -> ConversationSnapshot:
        """Start a new conversation at the location prompt."""
        now = self.clock()
        row = Conversation(
            driver_phone_e164=phone,
            current_state=ConversationState.AWAITING_LOCATION_OR_LOT_CODE.value,
            is_active=True,
            last_inbound_at=now,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self._commit("create_conversation")
        self.session.refresh(row)
        logger.info(
            "Conversation created",
            extra={"phone": phone, "conversation_id": str(row.id)},
        )
        return ConversationSnapshot.model_validate(row)

    def update_conversation(self, conversation_id: UUID, **fields: Any) -> ConversationSnapshot:
        """Apply field updates to a conversation and stamp updated_at."""
        row = self.session.get(Conversation, conversation_id)
        if row is None:
            raise LookupFailure("conversation", conversation_id)

        for name, value in fields.items():
            setattr(row, name, _column_value(value))
        row.updated_at = self.clock()
        self._commit("update_conversation")
        self.session.refresh(row)
        return ConversationSnapshot.model_validate(row)

    def deactivate_active_conversations(self, phone: str, state: ConversationState) -> int:
        """Deactivate every active conversation for a phone, setting a terminal state."""
        count = self._bulk_update(
            update(Conversation)
            .where(Conversation.driver_phone_e164 == phone, Conversation.is_active.is_(True))
            .values(is_active=False, current_state=state.value, updated_at=self.clock()),
            "deactivate_active_conversations",
        )
        if count:
            logger.info(
                "Conversations deactivated",
                extra={"phone": phone, "count": count, "reason": state.value},
            )
        return count

    def expire_idle_conversations(self, cutoff: datetime) -> int:
        """Expire active conversations with no inbound message since `cutoff`."""
        return self._bulk_update(
            update(Conversation)
            .where(
                Conversation.is_active.is_(True),
                Conversation.last_inbound_at < cutoff,
            )
            .values(
                is_active=False,
                current_state=ConversationState.EXPIRED.value,
                updated_at=self.clock(),
            ),
            "expire_idle_conversations",
        )

    def count_active_conversations(self) -> int:
        return self.session.scalar(
            select(func.count()).select_from(Conversation).where(Conversation.is_active.is_(True))
        ) or 0

    # ========================================================================
    # SMS LOG
    # ========================================================================

    def log_message(
        self,
        conversation_id: Optional[UUID],
        phone: str,
        direction: MessageDirection,
        body: str,
        raw_payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append one message to the SMS log."""
        raw = None
        if raw_payload is not None:
            raw = json.dumps(raw_payload, default=str)[:RAW_PAYLOAD_MAX_CHARS]

        self.session.add(SmsMessage(
            conversation_id=conversation_id,
            phone_e164=phone,
            direction=direction.value,
            body=body or "",
            raw_payload=raw,
            created_at=self.clock(),
        ))
        self._commit("log_message")

    def list_messages(self, phone: str) -> List[SmsMessage]:
        """All logged messages for a phone, oldest first."""
        return list(self.session.scalars(
            select(SmsMessage)
            .where(SmsMessage.phone_e164 == phone)
            .order_by(SmsMessage.created_at, SmsMessage.id)
        ))

    # ========================================================================
    # LOTS (read-only)
    # ========================================================================

    def get_lot(self, lot_id: UUID) -> Optional[LotRecord]:
        row = self.session.get(Lot, lot_id)
        return LotRecord.model_validate(row) if row else None

    def get_lots(self, lot_ids: List[UUID]) -> List[LotRecord]:
        """Lots by id, in the order given; unknown ids are skipped."""
        if not lot_ids:
            return []
        rows = {row.id: row for row in self.session.scalars(select(Lot).where(Lot.id.in_(lot_ids)))}
        return [LotRecord.model_validate(rows[i]) for i in lot_ids if i in rows]

    def find_lots_by_code_or_slug(self, code: str, slug: str) -> List[LotRecord]:
        """Active lots whose code or slug matches, case-insensitively."""
        rows = self.session.scalars(
            select(Lot)
            .where(
                Lot.is_active.is_(True),
                or_(func.lower(Lot.lot_code) == code.lower(), func.lower(Lot.slug) == slug.lower()),
            )
            .order_by(Lot.name)
        )
        return [LotRecord.model_validate(row) for row in rows]

    def find_lots_by_city_state(self, city: str, state: Optional[str], limit: Optional[int] = None) -> List[LotRecord]:
        """Active lots whose city (and state, when given) starts with the input."""
        conditions = [
            Lot.is_active.is_(True),
            Lot.city.ilike(f"{_escape_like(city)}%", escape="\\"),
        ]
        if state:
            conditions.append(Lot.state.ilike(f"{_escape_like(state)}%", escape="\\"))

        query = select(Lot).where(*conditions).order_by(Lot.name)
        if limit:
            query = query.limit(limit)
        return [LotRecord.model_validate(row) for row in self.session.scalars(query)]

    # ========================================================================
    # BOOKINGS
    # ========================================================================

    def create_booking(self, **fields: Any) -> BookingRecord:
        now = self.clock()
        row = Booking(
            **{name: _column_value(value) for name, value in fields.items()},
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self._commit("create_booking")
        self.session.refresh(row)
        logger.info(
            "Booking created",
            extra={"booking_id": str(row.id), "conversation_id": str(row.conversation_id)},
        )
        return BookingRecord.model_validate(row)

    def get_booking(self, booking_id: UUID) -> Optional[BookingRecord]:
        row = self.session.get(Booking, booking_id)
        return BookingRecord.model_validate(row) if row else None

    def get_booking_by_session_id(self, session_id: str) -> Optional[BookingRecord]:
        row = self.session.scalars(
            select(Booking).where(Booking.stripe_session_id == session_id).limit(1)
        ).first()
        return BookingRecord.model_validate(row) if row else None

    def update_booking(self, booking_id: UUID, **fields: Any) -> BookingRecord:
        row = self.session.get(Booking, booking_id)
        if row is None:
            raise LookupFailure("booking", booking_id)

        for name, value in fields.items():
            setattr(row, name, _column_value(value))
        row.updated_at = self.clock()
        self._commit("update_booking")
        self.session.refresh(row)
        return BookingRecord.model_validate(row)

    def count_booked_stalls(self, lot_id: UUID, day: date, pending_since: datetime) -> int:
        """
        Stalls held at a lot on a service day.

        Confirmed bookings always hold a stall; pending ones only while their
        payment link is fresh (created at or after `pending_since`).
        """
        return self.session.scalar(
            select(func.count())
            .select_from(Booking)
            .where(
                Booking.lot_id == lot_id,
                Booking.start_date <= day,
                Booking.end_date > day,
                or_(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    and_(
                        Booking.status == BookingStatus.PENDING_PAYMENT.value,
                        Booking.created_at >= pending_since,
                    ),
                ),
            )
        ) or 0

    # ========================================================================
    # SCHEDULED MESSAGES
    # ========================================================================

    def enqueue_scheduled_message(
        self,
        booking: BookingRecord,
        message_type: ScheduledMessageType,
        send_at: datetime,
    ) -> ScheduledMessageRecord:
        now = self.clock()
        row = ScheduledMessage(
            booking_id=booking.id,
            lot_id=booking.lot_id,
            driver_phone_e164=booking.driver_phone_e164,
            driver_full_name=booking.driver_full_name,
            message_type=message_type.value,
            send_at=send_at,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self._commit("enqueue_scheduled_message")
        self.session.refresh(row)
        logger.info(
            "Scheduled message enqueued",
            extra={"booking_id": str(booking.id), "type": message_type.value, "send_at": send_at.isoformat()},
        )
        return ScheduledMessageRecord.model_validate(row)

    def list_due_scheduled_messages(self, now: datetime, limit: int) -> List[ScheduledMessageRecord]:
        rows = self.session.scalars(
            select(ScheduledMessage)
            .where(ScheduledMessage.sent_at.is_(None), ScheduledMessage.send_at <= now)
            .order_by(ScheduledMessage.send_at)
            .limit(limit)
        )
        return [ScheduledMessageRecord.model_validate(row) for row in rows]

    def list_scheduled_messages(self, booking_id: UUID) -> List[ScheduledMessageRecord]:
        rows = self.session.scalars(
            select(ScheduledMessage).where(ScheduledMessage.booking_id == booking_id)
        )
        return [ScheduledMessageRecord.model_validate(row) for row in rows]

    def mark_scheduled_dispatched(self, message_id: UUID, error: Optional[str] = None) -> None:
        """Close a scheduled message; it will never be picked up again."""
        self._bulk_update(
            update(ScheduledMessage)
            .where(ScheduledMessage.id == message_id)
            .values(sent_at=self.clock(), last_error=error, updated_at=self.clock()),
            "mark_scheduled_dispatched",
        )

    def record_scheduled_error(self, message_id: UUID, error: str) -> None:
        """Record a transient failure; the message stays due for the next poll."""
        self._bulk_update(
            update(ScheduledMessage)
            .where(ScheduledMessage.id == message_id)
            .values(last_error=error, updated_at=self.clock()),
            "record_scheduled_error",
        )

    def count_due_scheduled_messages(self, now: datetime) -> int:
        return self.session.scalar(
            select(func.count())
            .select_from(ScheduledMessage)
            .where(ScheduledMessage.sent_at.is_(None), ScheduledMessage.send_at <= now)
        ) or 0
