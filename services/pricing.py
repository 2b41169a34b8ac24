"""Pricing calculator: lot rate schedule + stay parameters -> cost breakdown."""

from domain.enums import StayType
from domain.models import LotRecord, PricingBreakdown


def compute_pricing(lot: LotRecord, stay_type: StayType, nights: int) -> PricingBreakdown:
    """
    Price a stay at a lot.

    Weekly and monthly stays use the lot's flat rate when one is defined;
    everything else (including custom stays of 7 or 30 nights) is
    nightly rate times nights. Missing rates fall back to per-night.

    Args:
        lot: Lot with its current rate schedule
        stay_type: Chosen stay option
        nights: Number of nights (at least 1)

    Returns:
        PricingBreakdown in integer cents
    """
    nights = max(int(nights), 1)
    nightly = int(lot.nightly_rate_cents or 0)

    if stay_type == StayType.WEEKLY and lot.weekly_rate_cents is not None:
        subtotal = int(lot.weekly_rate_cents)
    elif stay_type == StayType.MONTHLY and lot.monthly_rate_cents is not None:
        subtotal = int(lot.monthly_rate_cents)
    else:
        subtotal = nightly * nights

    deposit_hold = 0
    return PricingBreakdown(
        nightly_rate_cents=nightly,
        subtotal_cents=subtotal,
        deposit_hold_cents=deposit_hold,
        total_cents=subtotal + deposit_hold,
    )


def format_dollars(cents: int) -> str:
    """Whole dollars when the amount is round, otherwise two decimals."""
    cents = int(cents or 0)
    if cents % 100 == 0:
        return f"${cents // 100}"
    return f"${cents / 100:.2f}"
