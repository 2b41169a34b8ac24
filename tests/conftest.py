"""Pytest configuration and fixtures for booking assistant tests."""
import pytest
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from core.settings import Settings
from core.utils_datetime import UTC
from db.base import Base
from db.models_sqlalchemy import Lot
from db.session import create_engine
from domain.models import CheckoutSession, DispatchResult, LotRecord
from services.booking_finalizer import BookingFinalizer
from services.context import build_context
from services.conversation_engine import ConversationEngine
from services.errors import PaymentGatewayError
from services.scheduler import ScheduledNotificationRunner


DRIVER_PHONE = "+14065550100"
OPERATOR_PHONE = "+14065550199"


class FakeClock:
    """Settable clock; tests move time forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMessenger:
    """Records every send; outcome is configurable per test."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.result = DispatchResult.sent(provider_id="SM_test")
        self.raise_error: Optional[Exception] = None

    def send(self, phone: str, text: str) -> DispatchResult:
        if self.raise_error is not None:
            raise self.raise_error
        self.sent.append((phone, text))
        return self.result

    def sent_to(self, phone: str) -> List[str]:
        return [text for to, text in self.sent if to == phone]


class FakePayments:
    """In-memory checkout sessions."""

    def __init__(self):
        self.sessions = {}
        self.created = []
        self.fail_create = False
        self.fail_retrieve = False

    def create_session(self, amount_cents, currency, description, metadata, customer_phone=None):
        if self.fail_create:
            raise PaymentGatewayError("card network down")
        session = CheckoutSession(
            id=f"cs_test_{uuid4().hex[:12]}",
            url=f"https://checkout.example/pay/{len(self.created) + 1}",
            status="open",
            payment_status="unpaid",
        )
        self.sessions[session.id] = session
        self.created.append({
            "amount_cents": amount_cents,
            "currency": currency,
            "description": description,
            "metadata": metadata,
            "session": session,
        })
        return session

    def retrieve_session(self, session_id):
        if self.fail_retrieve or session_id not in self.sessions:
            raise PaymentGatewayError(f"no such session {session_id}")
        return self.sessions[session_id]


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def base_time():
    """6pm Mountain on Oct 17, 2026 (00:00 UTC Oct 18)."""
    return datetime(2026, 10, 18, 0, 0, tzinfo=UTC)


@pytest.fixture(scope="function")
def clock(base_time):
    return FakeClock(base_time)


@pytest.fixture(scope="function")
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        alert_phone_e164=OPERATOR_PHONE,
        stripe_webhook_secret="whsec_test_secret",
        conversation_idle_minutes=30,
        max_lot_choices=5,
        default_timezone="America/Denver",
    )


@pytest.fixture(scope="function")
def messenger():
    return FakeMessenger()


@pytest.fixture(scope="function")
def payments():
    return FakePayments()


@pytest.fixture(scope="function")
def context(db_session, messenger, payments, test_settings, clock):
    """Booking context around the test session."""
    return build_context(db_session, messenger, payments, settings=test_settings, clock=clock)


@pytest.fixture(scope="function")
def engine(context):
    return ConversationEngine(context)


@pytest.fixture(scope="function")
def finalizer(context):
    return BookingFinalizer(context)


@pytest.fixture(scope="function")
def runner(context):
    return ScheduledNotificationRunner(context)


@pytest.fixture(scope="function")
def make_lot(db_session):
    """Factory fixture to insert a lot."""
    def _make(**kwargs) -> LotRecord:
        data = {
            "name": "Bozeman Yard",
            "lot_code": "BZN1",
            "slug": "bozeman-yard",
            "region_label": "I-90 Exit 306",
            "address_line1": "123 Frontage Rd",
            "city": "Bozeman",
            "state": "MT",
            "zip": "59715",
            "latitude": 45.6770,
            "longitude": -111.0429,
            "nightly_rate_cents": 2500,
            "weekly_rate_cents": 15000,
            "monthly_rate_cents": 50000,
            "capacity_total": 10,
            "parking_instructions": "Use the north gate.",
            "review_url": "https://reviews.example/bzn1",
            "timezone": "America/Denver",
            "is_active": True,
        }
        data.update(kwargs)
        lot = Lot(**data)
        db_session.add(lot)
        db_session.commit()
        db_session.refresh(lot)
        return LotRecord.model_validate(lot)
    return _make


@pytest.fixture(scope="function")
def lot(make_lot):
    return make_lot()


@pytest.fixture(scope="function")
def converse(engine):
    """Send several messages from one phone; returns the replies."""
    def _converse(*messages: str, phone: str = DRIVER_PHONE) -> List[str]:
        return [engine.handle_inbound(phone, message, {"From": phone, "Body": message}) for message in messages]
    return _converse


@pytest.fixture(scope="function")
def book_to_summary(converse):
    """Walk a driver from BOOK up to the summary for a lot code."""
    def _book(lot_code: str = "BZN1", stay: str = "1", phone: str = DRIVER_PHONE) -> List[str]:
        return converse(
            "BOOK",
            lot_code,
            "Jane Driver",
            "1",
            "Freightliner Cascadia",
            "MT 7-XYZ456",
            stay,
            phone=phone,
        )
    return _book


@pytest.fixture(scope="function")
def book_to_payment(book_to_summary, converse, context):
    """Walk a driver through to a pending booking; returns it."""
    def _book(lot_code: str = "BZN1", stay: str = "1", phone: str = DRIVER_PHONE):
        book_to_summary(lot_code=lot_code, stay=stay, phone=phone)
        converse("YES", phone=phone)
        conversation = context.store.get_active_conversation(phone)
        assert conversation is not None and conversation.booking_id is not None, (
            f"no pending booking for lot {lot_code}; is the lot created?"
        )
        return context.store.get_booking(conversation.booking_id)
    return _book


def checkout_completed_event(session_id: Optional[str], booking_id: Optional[str] = None, event_id: str = "evt_1") -> dict:
    """A checkout.session.completed event body."""
    metadata = {"booking_id": booking_id} if booking_id else {}
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_intent": "pi_test_123",
                "customer": "cus_test_123",
                "metadata": metadata,
            }
        },
    }


@pytest.fixture(scope="function")
def checkout_event():
    return checkout_completed_event
