"""Explicit dependency set handed to the state machine and the finalizer."""

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from sqlalchemy.orm import Session

from core.settings import Settings, settings as default_settings
from core.utils_datetime import get_current_datetime
from domain.models import CheckoutSession, DispatchResult
from services.alerts import OperatorAlerts
from services.availability import AvailabilityService
from services.conversation_store import Clock, ConversationStore
from services.lot_resolver import LotResolver


class MessagingGateway(Protocol):
    """Send `text` to `phone`; never raises."""

    def send(self, phone: str, text: str) -> DispatchResult:
        ...


class PaymentGateway(Protocol):
    """Hosted checkout sessions."""

    def create_session(
        self,
        amount_cents: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        customer_phone: Optional[str] = None,
    ) -> CheckoutSession:
        ...

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        ...


@dataclass
class BookingContext:
    """Collaborators for one unit of work (one inbound message or webhook event)."""

    store: ConversationStore
    messenger: MessagingGateway
    payments: PaymentGateway
    alerts: OperatorAlerts
    availability: AvailabilityService
    lot_resolver: LotResolver
    settings: Settings
    clock: Clock


def build_context(
    session: Session,
    messenger: MessagingGateway,
    payments: PaymentGateway,
    settings: Settings = default_settings,
    clock: Clock = get_current_datetime,
) -> BookingContext:
    """Wire a BookingContext around one database session."""
    store = ConversationStore(session, clock)
    return BookingContext(
        store=store,
        messenger=messenger,
        payments=payments,
        alerts=OperatorAlerts(messenger, settings),
        availability=AvailabilityService(store, settings, clock),
        lot_resolver=LotResolver(store, settings.max_lot_choices),
        settings=settings,
        clock=clock,
    )
