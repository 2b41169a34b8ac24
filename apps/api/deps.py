"""FastAPI dependencies: settings, database session, provider gateways, booking context."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from core.settings import Settings, settings
from core.utils_datetime import get_current_datetime
from db.session import get_db
from integrations.stripe.checkout import StripeCheckoutGateway
from integrations.twilio.messaging import TwilioMessagingGateway
from services.context import BookingContext, MessagingGateway, PaymentGateway, build_context
from services.conversation_store import Clock
from services.rate_limit import SlidingWindowRateLimiter


__all__ = [
    "get_db",
    "get_settings",
    "get_clock",
    "get_messenger",
    "get_payments",
    "get_webhook_verifier",
    "get_rate_limiter",
    "get_booking_context",
]


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    return get_current_datetime


@lru_cache
def get_messenger() -> MessagingGateway:
    return TwilioMessagingGateway(settings)


@lru_cache
def _stripe_gateway() -> StripeCheckoutGateway:
    return StripeCheckoutGateway(settings)


def get_payments() -> PaymentGateway:
    return _stripe_gateway()


def get_webhook_verifier() -> StripeCheckoutGateway:
    return _stripe_gateway()


@lru_cache
def get_rate_limiter() -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(settings.rate_limit_max_messages, settings.rate_limit_window_seconds)


def get_booking_context(
    db: Session = Depends(get_db),
    messenger: MessagingGateway = Depends(get_messenger),
    payments: PaymentGateway = Depends(get_payments),
    clock: Clock = Depends(get_clock),
    app_settings: Settings = Depends(get_settings),
) -> BookingContext:
    """One BookingContext per request, around the request's session."""
    return build_context(db, messenger, payments, settings=app_settings, clock=clock)
