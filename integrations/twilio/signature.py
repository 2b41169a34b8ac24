"""Inbound webhook authenticity check (X-Twilio-Signature)."""

import logging
from typing import Mapping

from twilio.request_validator import RequestValidator

from core.settings import Settings


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def public_url(settings: Settings, request_url: str, path: str, query: str = "") -> str:
    """URL Twilio signed: the configured public base URL when behind a proxy."""
    if settings.public_base_url:
        url = settings.public_base_url.rstrip("/") + path
        return f"{url}?{query}" if query else url
    return request_url


def is_valid_twilio_request(
    settings: Settings,
    url: str,
    params: Mapping[str, str],
    signature: str,
) -> bool:
    """
    Validate a Twilio webhook signature.

    Returns:
        True when validation is disabled or the signature matches
    """
    if not settings.twilio_validate_signature:
        return True
    if not signature or not settings.twilio_auth_token:
        logger.warning("Missing Twilio signature or auth token", extra={"url": url})
        return False

    valid = RequestValidator(settings.twilio_auth_token).validate(url, dict(params), signature)
    if not valid:
        logger.warning("Invalid Twilio signature", extra={"url": url})
    return valid
