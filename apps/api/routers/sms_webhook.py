"""Inbound SMS webhook (Twilio)."""

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response

from apps.api.deps import get_booking_context, get_rate_limiter
from core.logging import LogContext
from domain.enums import MessageDirection
from integrations.twilio.signature import SIGNATURE_HEADER, is_valid_twilio_request, public_url
from integrations.twilio.twiml import generate_error_twiml, generate_message_twiml
from services.context import BookingContext
from services.conversation_engine import ConversationEngine
from services.rate_limit import SlidingWindowRateLimiter
from services import sms_templates as t


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms", tags=["sms"])


def twiml_response(content: str, status_code: int = 200) -> Response:
    return Response(content=content, media_type="application/xml", status_code=status_code)


@router.post("/inbound")
async def handle_inbound_sms(
    request: Request,
    From: str = Form(""),
    Body: str = Form(""),
    context: BookingContext = Depends(get_booking_context),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
):
    """
    Handle an inbound SMS and answer inline with TwiML.

    Always answers 200 with a reply (a generic apology on internal failure),
    so Twilio does not redeliver the same message. Only a failed signature
    check is rejected (403).

    Args:
        request: FastAPI request object
        From: Sender phone (E.164)
        Body: Message text
        context: Booking context for this request

    Returns:
        Response: TwiML XML response
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    url = public_url(context.settings, str(request.url), request.url.path, request.url.query)
    if not is_valid_twilio_request(context.settings, url, params, request.headers.get(SIGNATURE_HEADER, "")):
        return Response(content="Invalid signature", status_code=403)

    phone = From.strip()
    if not phone:
        logger.warning("Inbound SMS without sender")
        return twiml_response(generate_message_twiml(None))

    try:
        with LogContext(logger, phone=phone) as log:
            if not limiter.allow(phone):
                log.log("warning", "Inbound SMS rate limited")
                context.store.log_message(None, phone, MessageDirection.INBOUND, Body, params)
                reply = t.rate_limited_message()
            else:
                reply = ConversationEngine(context).handle_inbound(phone, Body, params)
    except Exception as e:
        context.store.session.rollback()
        context.alerts.notify(f"Error handling SMS from {phone}: {type(e).__name__}: {e}")
        return twiml_response(generate_error_twiml())

    return twiml_response(generate_message_twiml(reply))
