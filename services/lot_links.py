"""Address and navigation link helpers for lots."""

from typing import Optional
from urllib.parse import quote

from domain.models import LotRecord

MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query="


def build_lot_address(lot: LotRecord) -> str:
    """Join the lot's address parts into one line ("" when none are set)."""
    street = ", ".join(p.strip() for p in (lot.address_line1, lot.address_line2) if p and p.strip())
    city_state = ", ".join(p.strip() for p in (lot.city, lot.state) if p and p.strip())
    if lot.zip and lot.zip.strip():
        city_state = f"{city_state} {lot.zip.strip()}".strip()
    return ", ".join(p for p in (street, city_state) if p)


def has_meaningful_address(address: Optional[str]) -> bool:
    """A bare city name is not navigable; a street number or a comma-separated address is."""
    if not address:
        return False
    return any(ch.isdigit() for ch in address) or "," in address


def has_coordinates(lot: LotRecord) -> bool:
    return lot.latitude is not None and lot.longitude is not None


def build_navigate_link(lot: LotRecord) -> str:
    """Maps search link: GPS when known, else a real street address, else the lot name/code."""
    if has_coordinates(lot):
        query = f"{lot.latitude},{lot.longitude}"
    else:
        address = build_lot_address(lot)
        if has_meaningful_address(address):
            query = address
        else:
            query = " ".join(p for p in (lot.name, lot.lot_code) if p)
    return MAPS_SEARCH_URL + quote(query, safe="")
