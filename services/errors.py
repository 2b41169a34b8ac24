"""Exception taxonomy for the booking assistant.

Driver-facing copy never includes these messages; they go to logs and the
operator alert channel.
"""
from typing import Optional


class BookingAssistantError(Exception):
    """Base class for all booking assistant errors."""


class LookupFailure(BookingAssistantError):
    """A record expected to exist is missing on reload."""

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class InvalidTransitionError(BookingAssistantError):
    """A conversation state change the flow graph does not allow."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition {current} -> {target} is not allowed")


class PaymentGatewayError(BookingAssistantError):
    """Checkout session creation or retrieval failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class WebhookSignatureError(BookingAssistantError):
    """Payment webhook payload failed authenticity checks."""
