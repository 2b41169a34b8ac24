"""Unit tests for stay pricing."""
import pytest
from uuid import uuid4

from domain.enums import StayType
from domain.models import LotRecord
from services.pricing import compute_pricing, format_dollars


def make_record(**kwargs) -> LotRecord:
    data = {"id": uuid4(), "name": "Test Lot", "nightly_rate_cents": 2500}
    data.update(kwargs)
    return LotRecord(**data)


@pytest.mark.unit
class TestComputePricing:
    """Test pricing across stay types and rate schedules."""

    def test_overnight_is_one_nightly_rate(self):
        """Test a single night costs the nightly rate."""
        pricing = compute_pricing(make_record(), StayType.OVERNIGHT, 1)

        assert pricing.nightly_rate_cents == 2500
        assert pricing.subtotal_cents == 2500
        assert pricing.deposit_hold_cents == 0
        assert pricing.total_cents == 2500

    def test_weekly_uses_flat_rate(self):
        """Test weekly stays use the weekly rate instead of 7 nights."""
        lot = make_record(weekly_rate_cents=15000)

        pricing = compute_pricing(lot, StayType.WEEKLY, 7)

        assert pricing.total_cents == 15000

    def test_monthly_uses_flat_rate(self):
        """Test monthly stays use the monthly rate."""
        lot = make_record(monthly_rate_cents=50000)

        assert compute_pricing(lot, StayType.MONTHLY, 30).total_cents == 50000

    def test_weekly_without_flat_rate_falls_back_to_nightly(self):
        """Test a lot with no weekly rate charges per night."""
        pricing = compute_pricing(make_record(weekly_rate_cents=None), StayType.WEEKLY, 7)

        assert pricing.total_cents == 7 * 2500

    def test_monthly_without_flat_rate_falls_back_to_nightly(self):
        """Test a lot with no monthly rate charges per night."""
        pricing = compute_pricing(make_record(), StayType.MONTHLY, 30)

        assert pricing.total_cents == 30 * 2500

    def test_custom_seven_nights_ignores_weekly_rate(self):
        """Test a custom 7-night stay is per-night even when a weekly rate exists."""
        lot = make_record(weekly_rate_cents=15000)

        pricing = compute_pricing(lot, StayType.CUSTOM, 7)

        assert pricing.total_cents == 17500

    def test_total_is_subtotal_plus_hold(self):
        """Test total always equals subtotal plus deposit hold."""
        for stay_type, nights in [(StayType.OVERNIGHT, 1), (StayType.CUSTOM, 12), (StayType.WEEKLY, 7)]:
            pricing = compute_pricing(make_record(weekly_rate_cents=12000), stay_type, nights)
            assert pricing.total_cents == pricing.subtotal_cents + pricing.deposit_hold_cents

    def test_pricing_is_immutable(self):
        """Test a breakdown cannot be modified after creation."""
        pricing = compute_pricing(make_record(), StayType.OVERNIGHT, 1)

        with pytest.raises(Exception):
            pricing.total_cents = 1


@pytest.mark.unit
class TestFormatDollars:
    """Test dollar formatting for SMS copy."""

    def test_round_amount(self):
        """Test whole-dollar amounts have no cents."""
        assert format_dollars(2500) == "$25"

    def test_fractional_amount(self):
        """Test other amounts show two decimals."""
        assert format_dollars(2550) == "$25.50"
