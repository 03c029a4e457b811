"""Tests for loyalty tier calculation."""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cozynook.domain.models import Booking, BookingStatus
from cozynook.domain.tier import ENTRY_TIER, calculate_tier, tier_for_count

from .helpers import EXEC_ROOM, d

_TEMPLATE = Booking(
    id="b0",
    user_id="guest-1",
    unit_id=EXEC_ROOM,
    check_in=d(1),
    check_out=d(2),
    status=BookingStatus.CONFIRMED,
    total_amount=150,
    guest_count=1,
    created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
)


def _bookings(confirmed: int, pending: int = 0, cancelled: int = 0) -> list[Booking]:
    out = []
    for status, n in (
        (BookingStatus.CONFIRMED, confirmed),
        (BookingStatus.PENDING, pending),
        (BookingStatus.CANCELLED, cancelled),
    ):
        out.extend(replace(_TEMPLATE, id=f"{status.value}{i}", status=status) for i in range(n))
    return out


class TestBands:
    @pytest.mark.parametrize(
        "count,level,rate",
        [
            (0, "entry", Decimal("0")),
            (5, "entry", Decimal("0")),
            (6, "mid", Decimal("0.10")),
            (10, "mid", Decimal("0.10")),
            (11, "top", Decimal("0.15")),
            (40, "top", Decimal("0.15")),
        ],
    )
    def test_band_boundaries(self, count, level, rate):
        tier = tier_for_count(count)
        assert tier.level == level
        assert tier.discount_rate == rate
        assert tier.current_count == count

    def test_entry_tier_points_at_mid(self):
        tier = tier_for_count(3)
        assert tier.name == "Silver Members"
        assert tier.next_threshold == 6
        assert tier.next_tier_name == "Bronze Members"
        assert tier.progress_percent == pytest.approx(50.0)

    def test_mid_tier_progress_starts_at_zero(self):
        tier = tier_for_count(6)
        assert tier.name == "Bronze Members"
        assert tier.next_threshold == 11
        assert tier.progress_percent == pytest.approx(0.0)

    def test_mid_tier_progress(self):
        assert tier_for_count(8).progress_percent == pytest.approx(40.0)

    def test_top_tier_has_no_next(self):
        tier = tier_for_count(11)
        assert tier.name == "Platinum Member"
        assert tier.next_threshold is None
        assert tier.next_tier_name is None
        assert tier.progress_percent == 100.0

    def test_negative_count_clamped(self):
        assert tier_for_count(-3) == ENTRY_TIER


class TestCalculateTier:
    def test_empty_history_is_entry(self):
        assert calculate_tier([]) == ENTRY_TIER

    def test_only_confirmed_bookings_count(self):
        tier = calculate_tier(_bookings(confirmed=5, pending=4, cancelled=9))
        assert tier.level == "entry"
        assert tier.current_count == 5

    def test_sixth_confirmed_booking_unlocks_mid(self):
        tier = calculate_tier(_bookings(confirmed=6, cancelled=2))
        assert tier.level == "mid"

    def test_order_does_not_matter(self):
        history = _bookings(confirmed=7, pending=2)
        assert calculate_tier(history) == calculate_tier(list(reversed(history)))

    def test_to_dict_serializes_rate_as_float(self):
        data = tier_for_count(12).to_dict()
        assert data["discount_rate"] == pytest.approx(0.15)
        assert data["level"] == "top"
