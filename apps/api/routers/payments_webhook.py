"""Payment provider webhook (Stripe)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from apps.api.deps import get_booking_context, get_webhook_verifier
from integrations.stripe.checkout import StripeCheckoutGateway
from services.booking_finalizer import BookingFinalizer
from services.context import BookingContext
from services.errors import WebhookSignatureError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook")
async def handle_payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    context: BookingContext = Depends(get_booking_context),
    verifier: StripeCheckoutGateway = Depends(get_webhook_verifier),
):
    """
    Handle a Stripe event.

    A payload that fails signature verification is rejected with 400 and
    nothing is touched. Everything else is acknowledged with 200, even when
    processing fails, since Stripe retries non-2xx responses.

    Returns:
        dict: {"received": True, "outcome": ...}
    """
    payload = await request.body()

    try:
        event = verifier.construct_event(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning("Payment webhook rejected", extra={"error": str(e)})
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        outcome = BookingFinalizer(context).handle_checkout_event(event)
    except Exception as e:
        logger.exception("Payment webhook processing failed", extra={"event_id": event.get("id")})
        context.store.session.rollback()
        context.alerts.notify(f"Error processing payment event {event.get('id')}: {type(e).__name__}: {e}")
        return {"received": True, "outcome": "error"}

    return {"received": True, "outcome": outcome.value}
