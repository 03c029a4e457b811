"""Loyalty tier calculation from a guest's booking history.

Bands (confirmed bookings only):
    0-5   -> Entry ("Silver Members"),  0% discount, next tier at 6
    6-10  -> Mid   ("Bronze Members"),  10% discount, next tier at 11
    11+   -> Top   ("Platinum Member"), 15% discount, no next tier
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from cozynook.domain.models import Booking, BookingStatus


@dataclass(frozen=True)
class TierDetails:
    level: str
    name: str
    discount_rate: Decimal
    current_count: int
    next_threshold: int | None
    next_tier_name: str | None
    progress_percent: float

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "name": self.name,
            "discount_rate": float(self.discount_rate),
            "current_count": self.current_count,
            "next_threshold": self.next_threshold,
            "next_tier_name": self.next_tier_name,
            "progress_percent": self.progress_percent,
        }


@dataclass(frozen=True)
class _Band:
    level: str
    name: str
    discount_rate: Decimal
    floor: int
    ceiling: int | None  # inclusive upper bound, None for the top band


_BANDS = (
    _Band("entry", "Silver Members", Decimal("0"), 0, 5),
    _Band("mid", "Bronze Members", Decimal("0.10"), 6, 10),
    _Band("top", "Platinum Member", Decimal("0.15"), 11, None),
)


def _progress(count: int, band: _Band) -> float:
    if band.ceiling is None:
        return 100.0
    width = band.ceiling - band.floor + 1
    pct = (count - band.floor) / width * 100
    return max(0.0, min(100.0, pct))


def tier_for_count(confirmed_count: int) -> TierDetails:
    """Map a confirmed-booking count to its tier."""
    count = max(0, confirmed_count)
    for idx, band in enumerate(_BANDS):
        if band.ceiling is None or count <= band.ceiling:
            nxt = _BANDS[idx + 1] if idx + 1 < len(_BANDS) else None
            return TierDetails(
                level=band.level,
                name=band.name,
                discount_rate=band.discount_rate,
                current_count=count,
                next_threshold=nxt.floor if nxt else None,
                next_tier_name=nxt.name if nxt else None,
                progress_percent=_progress(count, band),
            )
    raise AssertionError("unreachable: top band has no ceiling")


def calculate_tier(bookings: Iterable[Booking]) -> TierDetails:
    """Compute a guest's tier from their bookings (any order, any status)."""
    confirmed = sum(1 for b in bookings if b.status is BookingStatus.CONFIRMED)
    return tier_for_count(confirmed)


ENTRY_TIER = tier_for_count(0)
