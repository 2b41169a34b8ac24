"""Hosted checkout sessions and webhook verification via the stripe library."""

import json
import logging
from typing import Any, Dict, Optional

import stripe

from core.settings import Settings
from domain.models import CheckoutSession
from services.errors import PaymentGatewayError, WebhookSignatureError


logger = logging.getLogger(__name__)


def _to_checkout_session(session: Any) -> CheckoutSession:
    return CheckoutSession(
        id=session["id"],
        url=session.get("url"),
        status=session.get("status"),
        payment_status=session.get("payment_status"),
    )


class StripeCheckoutGateway:
    """Create/retrieve checkout sessions and verify webhook events."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def create_session(
        self,
        amount_cents: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        customer_phone: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Create a one-line payment-mode checkout session.

        The metadata (booking id) is copied onto the payment intent too, so
        either object can be correlated back to the booking.

        Raises:
            PaymentGatewayError: Stripe rejected the request or was unreachable
        """
        try:
            session = stripe.checkout.Session.create(
                api_key=self.settings.stripe_secret_key,
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": currency,
                        "unit_amount": int(amount_cents),
                        "product_data": {"name": description},
                    },
                    "quantity": 1,
                }],
                success_url=self.settings.checkout_success_url,
                cancel_url=self.settings.checkout_cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe session create failed",
                extra={"metadata": metadata, "error": str(e)},
            )
            raise PaymentGatewayError(f"Checkout session create failed: {e.user_message or e}", e) from e

        logger.info(
            "Stripe session created",
            extra={"session_id": session["id"], "amount_cents": amount_cents, "customer_phone": customer_phone},
        )
        return _to_checkout_session(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """
        Raises:
            PaymentGatewayError: Stripe rejected the request or was unreachable
        """
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.settings.stripe_secret_key)
        except stripe.StripeError as e:
            logger.error("Stripe session retrieve failed", extra={"session_id": session_id, "error": str(e)})
            raise PaymentGatewayError(f"Checkout session retrieve failed: {e.user_message or e}", e) from e
        return _to_checkout_session(session)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook payload against the signing secret and parse it.

        Raises:
            WebhookSignatureError: missing/invalid signature or malformed payload
        """
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        if not self.settings.stripe_webhook_secret:
            raise WebhookSignatureError("Webhook signing secret not configured")

        try:
            stripe.Webhook.construct_event(payload, signature, self.settings.stripe_webhook_secret)
            return json.loads(payload)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid signature: {e}") from e
        except ValueError as e:
            raise WebhookSignatureError(f"Malformed payload: {e}") from e
