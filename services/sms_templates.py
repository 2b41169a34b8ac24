"""
Driver-facing SMS copy.

Everything the driver reads lives here so the state handlers only decide
which message to send.
"""
from datetime import date
from typing import Iterable, Optional

from core.settings import settings
from core.utils_datetime import format_date_range
from domain.enums import StayType, TruckType
from domain.models import BookingRecord, LotRecord
from services.lot_links import (
    build_lot_address,
    build_navigate_link,
    has_coordinates,
    has_meaningful_address,
)
from services.pricing import format_dollars


COMMANDS_FOOTER = "\n\nCommands:\nBOOK = new booking\nSUPPORT = help"
OPT_OUT_LINE = "Msg & data rates may apply. Reply STOP to opt out."
GENERIC_ERROR = "Oops, something went wrong. Please try again in a moment or text SUPPORT for help."
DEFAULT_PARKING_INSTRUCTIONS = "Park in marked truck stalls."

TRUCK_TYPE_OPTIONS = {
    "1": TruckType.SEMI,
    "2": TruckType.BOBTAIL,
    "3": TruckType.HOTSHOT,
    "4": TruckType.OTHER,
}

# option -> (stay type, nights); "4" asks for a custom night count
STAY_OPTIONS = {
    "1": (StayType.OVERNIGHT, 1),
    "2": (StayType.WEEKLY, 7),
    "3": (StayType.MONTHLY, 30),
}
CUSTOM_STAY_OPTION = "4"

SUMMARY_YES = frozenset({"YES", "Y"})
SUMMARY_NO = frozenset({"NO", "N"})
RESEND_KEYWORDS = frozenset({"LINK", "PAY", "PAYMENT", "YES", "Y", "RESEND"})


def with_commands_footer(text: str) -> str:
    return text + COMMANDS_FOOTER


def plural_nights(nights: int) -> str:
    return f"{nights} night{'' if nights == 1 else 's'}"


def lot_label(name: str, code: Optional[str]) -> str:
    return f"{name} ({code})" if code else name


# ============================================================================
# GLOBAL COMMANDS
# ============================================================================

def help_message() -> str:
    return (
        f"For help with {settings.brand_name}, you can:\n"
        "BOOK - start a new reservation\n"
        "RESET - clear and start over\n"
        "SUPPORT - text a human"
    )


def menu_message() -> str:
    return (
        f"{settings.brand_name} commands:\n"
        "BOOK - start a new reservation\n"
        "RESET - clear your info and start over\n"
        "CANCEL - cancel your active booking\n"
        "SUPPORT - text a human"
    )


def demo_message() -> str:
    return (
        f"{settings.brand_name} demo - here's what your drivers see:\n\n"
        "1) They text BOOK to this number.\n"
        "2) We ask where they want to park (city/state or lot code).\n"
        "3) They pick your lot, then enter name, truck, plate, and nights.\n"
        "4) We text them a secure payment link to pay by card.\n"
        "5) After payment, they get a confirmation with parking instructions.\n"
        "6) The next evening, we send them a quick review link for your lot.\n\n"
        "If you'd like a live walkthrough, text SUPPORT and we'll set up a quick demo call."
    )


def cancelled_message() -> str:
    return "Okay, your booking flow has been cancelled. You will not be charged for any incomplete bookings."


def reset_message() -> str:
    return "Got it. I've cleared your previous booking info. Text BOOK to start a fresh reservation."


def support_ack_message() -> str:
    return "Thanks for reaching out. A human will review your message and follow up if needed."


def support_fallback_message() -> str:
    return (
        "Support is not fully configured yet.\n"
        f"Please email {settings.support_email}, or text BOOK to start a new reservation."
    )


def rate_limited_message() -> str:
    return "You're sending messages too quickly. Please wait a moment and try again."


def no_conversation_message() -> str:
    return "Text BOOK to start a new truck parking reservation."


def expired_message() -> str:
    return "Your previous booking timed out after a period of inactivity. Text BOOK to start over."


def start_failed_message() -> str:
    return "Something went wrong starting your booking. Please try again in a minute."


# ============================================================================
# BOOKING FLOW PROMPTS
# ============================================================================

def location_prompt() -> str:
    return with_commands_footer(
        "Where do you want to park?\n"
        'Reply with a city and state (e.g. "Bozeman MT") or a lot code.\n\n'
        + OPT_OUT_LINE
    )


def location_not_found_message() -> str:
    return (
        "I couldn't find any lots near that.\n"
        'Try a city and state (e.g. "Bozeman MT" or "Kansas City MO").'
    )


def sold_out_message(lot_name: Optional[str]) -> str:
    return (
        f"{lot_name or 'That lot'} is sold out tonight.\n\n"
        "Reply with another city/state to see nearby lots, or text BOOK to start over."
    )


def sold_out_choice_message(lot_name: Optional[str]) -> str:
    return (
        f"{lot_name or 'That lot'} is sold out tonight.\n\n"
        "Reply with another number from the list, or text BOOK to start over."
    )


def lot_selected_message(lot: LotRecord, stalls_left: Optional[int]) -> str:
    suffix = f"\nStalls left tonight: {stalls_left}" if stalls_left is not None else ""
    return f"You're booking: {lot.display_name}.{suffix}\n\nWhat's your first and last name?"


def lot_choices_message(lots: Iterable[LotRecord]) -> str:
    lines = [f"{i}) {lot.display_name}" for i, lot in enumerate(lots, start=1)]
    return "I found these lots:\n" + "\n".join(lines) + "\n\nReply with a number."


def invalid_lot_choice_message() -> str:
    return "Reply with a valid number from the list."


def name_retry_message() -> str:
    return "Please send your full name."


def truck_type_prompt() -> str:
    return (
        "What are you parking?\n"
        "1 = Semi\n"
        "2 = Bobtail\n"
        "3 = Hotshot\n"
        "4 = Other\n"
        "Reply with a number."
    )


def truck_type_retry_message() -> str:
    return "Reply 1, 2, 3, or 4."


def make_model_prompt() -> str:
    return 'Truck make & model? (e.g. "Freightliner Cascadia")'


def make_model_retry_message() -> str:
    return "Please send truck make & model."


def plate_prompt() -> str:
    return 'Plate (state + number)? (e.g. "MT 7-XYZ456")'


def plate_retry_message() -> str:
    return "Please send a valid license plate."


def stay_option_prompt() -> str:
    return (
        "How long are you staying?\n"
        "1 = 1 night\n"
        "2 = 7 nights\n"
        "3 = 30 nights\n"
        "4 = Other\n"
        "Reply with a number."
    )


def stay_option_retry_message() -> str:
    return "Reply 1-4."


def custom_nights_prompt() -> str:
    return "How many nights?"


def custom_nights_retry_message() -> str:
    return f"Enter 1-{settings.max_custom_nights} nights."


def summary_message(
    lot: LotRecord,
    driver_full_name: Optional[str],
    truck_type: Optional[TruckType],
    truck_make_model: Optional[str],
    license_plate: Optional[str],
    nights: int,
    total_cents: int,
) -> str:
    truck = truck_type.value.capitalize() if truck_type else "?"
    return with_commands_footer(
        "Here's your booking:\n"
        f"• Lot: {lot.display_name}\n"
        f"• Name: {driver_full_name}\n"
        f"• Truck: {truck} - {truck_make_model}\n"
        f"• Plate: {license_plate}\n"
        f"• Stay: {plural_nights(nights)}\n"
        f"• Total: ${total_cents / 100:.2f}\n\n"
        + summary_retry_message()
    )


def summary_retry_message() -> str:
    return "Reply YES to get your payment link, or NO to cancel."


def summary_declined_message() -> str:
    return "No problem, booking cancelled."


def summary_failed_message() -> str:
    return "We couldn't build your summary. Try again in a moment or text SUPPORT for help."


# ============================================================================
# PAYMENT
# ============================================================================

def payment_link_message(lot: LotRecord, nights: int, total_cents: int, url: str) -> str:
    return (
        f"{settings.brand_name} - secure payment link\n"
        f"{lot_label(lot.name, lot.lot_code)}\n"
        f"{plural_nights(nights)} • {format_dollars(total_cents)}\n\n"
        f"{url}\n\n"
        "Need help? Reply SUPPORT."
    )


def booking_failed_message() -> str:
    return "We couldn't create your booking right now. Please try again in a moment or text SUPPORT for help."


def payment_reminder_message() -> str:
    return (
        "Your payment link was already sent.\n"
        "Complete payment to confirm, or text RESET to start over."
    )


def payment_resend_message(url: str) -> str:
    return f"Here's your secure payment link:\n{url}"


def payment_no_booking_message() -> str:
    return (
        "We tried to find your payment link but ran into an issue.\n"
        "Text RESET to start a fresh booking."
    )


def payment_missing_booking_message() -> str:
    return (
        "We hit a snag trying to find your payment.\n"
        "Your card has not been charged. Text RESET to start over."
    )


def payment_reopen_failed_message() -> str:
    return (
        "We could not re-open your payment link.\n"
        "Text RESET to start a new booking."
    )


def already_confirmed_message(booking: BookingRecord) -> str:
    return (
        "Your booking is already confirmed and paid.\n"
        f"Dates: {format_date_range(booking.start_date, booking.end_date)}\n"
        f"Plate: {booking.license_plate_raw}"
    )


def confirmation_message(lot: LotRecord, start_date: date, end_date: date, plate: Optional[str]) -> str:
    lines = [
        "Booking confirmed!",
        lot_label(lot.name, lot.lot_code),
        f"Dates: {format_date_range(start_date, end_date)}",
    ]
    if plate:
        lines.append(f"Plate: {plate}")
    lines.append("")

    address = build_lot_address(lot)
    if has_meaningful_address(address):
        lines.append(f"Address: {address}")
    lines.append(f"Navigate: {build_navigate_link(lot)}")
    if has_coordinates(lot):
        lines.append(f"GPS: {lot.latitude},{lot.longitude}")
    lines.append("")

    lines.append("Special instructions:")
    lines.append((lot.parking_instructions or "").strip() or DEFAULT_PARKING_INSTRUCTIONS)
    lines.append("")

    lines.append("Keep this text for your records.")
    lines.append("Reply SUPPORT if you need help.")
    return "\n".join(lines)


# ============================================================================
# SCHEDULED
# ============================================================================

def first_name(full_name: Optional[str]) -> str:
    parts = (full_name or "").split()
    return parts[0] if parts else "driver"


def review_nudge_message(driver_full_name: Optional[str], lot: LotRecord, review_url: str) -> str:
    return (
        f"Hey {first_name(driver_full_name)} - quick favor? "
        f"If you have 15 seconds, please leave a review for {lot_label(lot.name, lot.lot_code)}. "
        f"Navigate: {build_navigate_link(lot)} "
        f"Review: {review_url} "
        "Safe travels."
    )
