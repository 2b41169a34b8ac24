"""Outbound SMS through the Twilio REST API."""

import logging
from typing import Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from core.settings import Settings
from domain.models import DispatchResult


logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS = 429


def classify_twilio_error(error: TwilioRestException) -> DispatchResult:
    """4xx (other than 429) will fail the same way again; everything else may not."""
    status = error.status or 0
    reason = f"twilio {status} (code {error.code}): {error.msg}"
    if 400 <= status < 500 and status != TOO_MANY_REQUESTS:
        return DispatchResult.permanent(reason)
    return DispatchResult.transient(reason)


class TwilioMessagingGateway:
    """Send `text` to `phone`. Never raises; failures come back as a DispatchResult."""

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    @property
    def dry_run(self) -> bool:
        return self._client is None and self.settings.sms_dry_run

    def send(self, phone: str, text: str) -> DispatchResult:
        if self.dry_run:
            logger.info("SMS dry run, not sent", extra={"phone": phone, "body": text})
            return DispatchResult.sent()

        try:
            message = self.client.messages.create(
                from_=self.settings.twilio_phone_number,
                to=phone,
                body=text,
            )
        except TwilioRestException as e:
            result = classify_twilio_error(e)
            logger.error(
                "Twilio send failed",
                extra={"phone": phone, "outcome": result.outcome.value, "reason": result.reason},
            )
            return result
        except (TwilioException, OSError) as e:
            logger.error("Twilio send failed", extra={"phone": phone, "error": str(e)}, exc_info=True)
            return DispatchResult.transient(f"twilio transport error: {e}")

        logger.info("SMS sent", extra={"phone": phone, "sid": message.sid})
        return DispatchResult.sent(provider_id=message.sid)
