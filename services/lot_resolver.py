"""Resolve a driver's location reply (lot code, slug, or city/state) to lots."""

import logging
import re
from typing import List, NamedTuple, Optional

from domain.models import LotRecord
from services.conversation_store import ConversationStore


logger = logging.getLogger(__name__)

_STATE_TOKEN = re.compile(r"^[A-Za-z]{2}$")


class CityState(NamedTuple):
    city: str
    state: Optional[str]


def normalize_location_input(raw: str) -> str:
    """Trim and collapse whitespace; commas count as separators."""
    return " ".join((raw or "").replace(",", " ").split())


def parse_city_state(raw: str) -> CityState:
    """
    Split "<city> [<2-letter state>]".

    A trailing two-letter alphabetic token is the state and everything before
    it the city, so multi-word cities work ("Kansas City MO"). Without such a
    token the whole input is the city.

    Examples:
        >>> parse_city_state("Kansas City MO")
        CityState(city='Kansas City', state='MO')
        >>> parse_city_state("Bozeman")
        CityState(city='Bozeman', state=None)
    """
    tokens = normalize_location_input(raw).split(" ")
    if len(tokens) >= 2 and _STATE_TOKEN.match(tokens[-1]):
        return CityState(city=" ".join(tokens[:-1]), state=tokens[-1].upper())
    return CityState(city=" ".join(tokens), state=None)


def slug_candidate(raw: str) -> str:
    """Lowercase, whitespace hyphenated: "Bozeman Yard" -> "bozeman-yard"."""
    return "-".join((raw or "").strip().lower().split())


class LotResolver:
    """Code/slug match first, then a prefix match on city (and state)."""

    def __init__(self, store: ConversationStore, max_choices: int = 5):
        self.store = store
        self.max_choices = max_choices

    def resolve(self, raw: str) -> List[LotRecord]:
        """
        Lots matching the input, at most `max_choices` of them.

        Results beyond the cap are dropped, not paginated.
        """
        text = (raw or "").strip()
        if not text:
            return []

        lots = self.store.find_lots_by_code_or_slug(text, slug_candidate(text))
        if not lots:
            city, state = parse_city_state(text)
            if city:
                lots = self.store.find_lots_by_city_state(city, state)

        if len(lots) > self.max_choices:
            logger.info(
                "Lot matches capped",
                extra={"location": text, "matches": len(lots), "shown": self.max_choices},
            )
        return lots[: self.max_choices]
