"""Remaining stall capacity for a lot on a service day (advisory only)."""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from core.settings import Settings
from core.utils_datetime import get_timezone, service_day
from domain.models import LotRecord
from services.conversation_store import Clock, ConversationStore


logger = logging.getLogger(__name__)


class AvailabilityService:
    """Counts stalls left; None means unknown and callers proceed optimistically."""

    def __init__(self, store: ConversationStore, settings: Settings, clock: Clock):
        self.store = store
        self.settings = settings
        self.clock = clock

    def current_service_day(self, lot: LotRecord) -> date:
        return service_day(
            self.clock(),
            get_timezone(lot.timezone),
            self.settings.service_day_rollover_hour,
        )

    def stalls_left(
        self,
        lot: LotRecord,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Optional[int]:
        """
        Stalls left at `lot` for the night of `start` (default: tonight), or the
        minimum over [start, end) when a range is given.

        Returns:
            Count of free stalls (may be <= 0), or None when capacity is unknown
            or the query failed.
        """
        if lot.capacity_total is None:
            return None

        first = start or self.current_service_day(lot)
        last = end if end and end > first else first + timedelta(days=1)
        pending_since = self.clock() - timedelta(minutes=self.settings.conversation_idle_minutes)

        try:
            left = None
            day = first
            while day < last:
                held = self.store.count_booked_stalls(lot.id, day, pending_since)
                remaining = lot.capacity_total - held
                left = remaining if left is None else min(left, remaining)
                day += timedelta(days=1)
            return left
        except SQLAlchemyError:
            logger.warning(
                "Availability query failed, treating as unknown",
                extra={"lot_id": str(lot.id)},
                exc_info=True,
            )
            self.store.session.rollback()
            return None
