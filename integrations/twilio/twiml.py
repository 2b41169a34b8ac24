"""TwiML XML response generation helpers for SMS replies."""

from typing import Optional
from xml.etree.ElementTree import Element, SubElement, tostring

from services.sms_templates import GENERIC_ERROR


def create_twiml_response() -> Element:
    """
    Create a basic TwiML Response element.

    Returns:
        Element: XML Element for TwiML Response
    """
    return Element("Response")


def add_message(response: Element, body: str) -> Element:
    """
    Add a Message verb (inline SMS reply) to a TwiML response.

    Args:
        response: TwiML Response element
        body: Reply text

    Returns:
        Element: Message element
    """
    message_element = SubElement(response, "Message")
    message_element.text = body
    return message_element


def generate_message_twiml(body: Optional[str]) -> str:
    """
    Generate TwiML answering an inbound SMS.

    An empty body produces an empty <Response/>, which sends nothing.
    """
    response = create_twiml_response()
    if body:
        add_message(response, body)
    return twiml_to_string(response)


def generate_error_twiml(error_message: Optional[str] = None) -> str:
    """Generic apology; internal error detail never reaches the driver."""
    return generate_message_twiml(error_message or GENERIC_ERROR)


def twiml_to_string(response: Element) -> str:
    """
    Convert TwiML Element to XML string.

    Args:
        response: TwiML Response element

    Returns:
        str: XML string with declaration
    """
    xml_string = tostring(response, encoding='unicode', method='xml')
    return f'<?xml version="1.0" encoding="UTF-8"?>{xml_string}'
