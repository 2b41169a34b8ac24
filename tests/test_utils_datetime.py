"""Unit tests for service-day and scheduling helpers."""
import pytest
from datetime import date, datetime

import pytz

from core.utils_datetime import (
    UTC,
    compute_review_send_at,
    ensure_utc,
    get_timezone,
    is_idle,
    service_day,
    stay_date_range,
)


DENVER = pytz.timezone("America/Denver")


@pytest.mark.unit
class TestServiceDay:
    """Test the lot-local service day rollover."""

    def test_evening_is_same_day(self):
        """Test 6pm local belongs to that calendar day."""
        now = DENVER.localize(datetime(2026, 10, 17, 18, 0))

        assert service_day(now, DENVER, rollover_hour=8) == date(2026, 10, 17)

    def test_before_rollover_is_previous_day(self):
        """Test 1am local still belongs to the previous night."""
        now = DENVER.localize(datetime(2026, 10, 18, 1, 0))

        assert service_day(now, DENVER, rollover_hour=8) == date(2026, 10, 17)

    def test_at_rollover_is_new_day(self):
        """Test the rollover hour itself starts the new day."""
        now = DENVER.localize(datetime(2026, 10, 18, 8, 0))

        assert service_day(now, DENVER, rollover_hour=8) == date(2026, 10, 18)

    def test_utc_input_is_converted(self):
        """Test a UTC moment is evaluated in lot-local time."""
        # 03:00 UTC Oct 18 is 21:00 MDT Oct 17
        now = datetime(2026, 10, 18, 3, 0, tzinfo=UTC)

        assert service_day(now, DENVER) == date(2026, 10, 17)

    def test_stay_date_range(self):
        """Test the end date is start plus nights."""
        assert stay_date_range(date(2026, 10, 17), 7) == (date(2026, 10, 17), date(2026, 10, 24))


@pytest.mark.unit
class TestReviewSendAt:
    """Test when review nudges are scheduled."""

    def test_next_day_at_local_hour(self):
        """Test the nudge goes out at 20:00 local the day after the service day."""
        confirmed = DENVER.localize(datetime(2026, 10, 17, 18, 0))

        send_at = compute_review_send_at(confirmed, DENVER, hour_local=20)

        assert send_at.astimezone(DENVER) == DENVER.localize(datetime(2026, 10, 18, 20, 0))
        assert send_at.tzinfo is not None

    def test_overnight_confirmation_uses_service_day(self):
        """Test a 2am confirmation nudges the same calendar evening."""
        confirmed = DENVER.localize(datetime(2026, 10, 18, 2, 0))

        send_at = compute_review_send_at(confirmed, DENVER, hour_local=20, rollover_hour=8)

        assert send_at.astimezone(DENVER).date() == date(2026, 10, 18)

    def test_test_delay_overrides(self):
        """Test a configured delay replaces the next-day schedule."""
        confirmed = datetime(2026, 10, 18, 0, 0, tzinfo=UTC)

        send_at = compute_review_send_at(confirmed, DENVER, test_delay_minutes=5)

        assert send_at == datetime(2026, 10, 18, 0, 5, tzinfo=UTC)


@pytest.mark.unit
class TestTimeHelpers:
    """Test timezone and idle helpers."""

    def test_unknown_timezone_falls_back(self):
        """Test an unknown timezone name uses the configured default."""
        assert get_timezone("Mars/Olympus") is not None
        assert get_timezone(None) is not None

    def test_naive_datetimes_are_utc(self):
        """Test naive values are treated as UTC."""
        assert ensure_utc(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_is_idle(self):
        """Test idleness is strictly longer than the threshold."""
        last = datetime(2026, 10, 18, 0, 0, tzinfo=UTC)

        assert is_idle(last, datetime(2026, 10, 18, 0, 30, tzinfo=UTC), 30) is False
        assert is_idle(last, datetime(2026, 10, 18, 0, 31, tzinfo=UTC), 30) is True
        assert is_idle(None, datetime(2026, 10, 18, 5, 0, tzinfo=UTC), 30) is False
