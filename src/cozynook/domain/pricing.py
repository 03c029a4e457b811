"""Pricing: nightly subtotal, tier discount and currency conversion.

Amounts are whole units of the canonical currency (USD). Discounted totals
round down but never below 1; converted amounts round up so the guest is
never under-charged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, InvalidOperation

from cozynook.domain.availability import validate_date_range
from cozynook.domain.models import BookingStore, InventoryUnit
from cozynook.domain.tier import TierDetails
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)

CANONICAL_CURRENCY = "USD"
HOME_CURRENCY = "MWK"
EXCHANGE_RATE_KEY = "exchange_rate_mwk"
MINIMUM_CHARGE = 1


@dataclass(frozen=True)
class Quote:
    nights: int
    nightly_price: int
    subtotal: int
    discount_rate: Decimal
    discount_amount: int
    total: int

    def to_dict(self) -> dict:
        return {
            "nights": self.nights,
            "nightly_price": self.nightly_price,
            "subtotal": self.subtotal,
            "discount_rate": float(self.discount_rate),
            "discount_amount": self.discount_amount,
            "total": self.total,
            "currency": CANONICAL_CURRENCY,
        }


def count_nights(check_in: date, check_out: date) -> int:
    """Nights between two dates, at least 1."""
    validate_date_range(check_in, check_out)
    return max(1, math.ceil((check_out - check_in).days))


def compute_total(
    unit: InventoryUnit,
    check_in: date,
    check_out: date,
    tier: TierDetails,
) -> Quote:
    """Price a stay for ``unit`` with the guest's tier discount applied.

    Example: 3 nights at 100 with a 10% tier -> subtotal 300, total 270.
    """
    nights = count_nights(check_in, check_out)
    subtotal = nights * unit.price
    discounted = (Decimal(subtotal) * (Decimal(1) - tier.discount_rate)).to_integral_value(
        rounding=ROUND_FLOOR
    )
    total = max(MINIMUM_CHARGE, int(discounted))
    return Quote(
        nights=nights,
        nightly_price=unit.price,
        subtotal=subtotal,
        discount_rate=tier.discount_rate,
        discount_amount=max(0, subtotal - total),
        total=total,
    )


def convert_amount(amount: int, rate: Decimal) -> int:
    """Convert a canonical amount with ``rate`` (home units per 1 base unit), rounding up."""
    return int((Decimal(amount) * rate).to_integral_value(rounding=ROUND_CEILING))


def _parse_rate(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        rate = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not rate.is_finite() or rate <= 0:
        return None
    return rate


class ExchangeRateSource:
    """MWK-per-USD rate read fresh from site config on every call."""

    def __init__(self, store: BookingStore, fallback: str | Decimal = "1750") -> None:
        fallback_rate = _parse_rate(str(fallback))
        if fallback_rate is None:
            raise ValueError(f"invalid fallback exchange rate: {fallback!r}")
        self._store = store
        self._fallback = fallback_rate

    @property
    def fallback(self) -> Decimal:
        return self._fallback

    def get_rate(self) -> Decimal:
        """Current rate, or the fallback if the source is down or holds junk."""
        try:
            raw = self._store.get_config(EXCHANGE_RATE_KEY)
        except Exception:
            logger.exception(
                "exchange rate lookup failed, using fallback",
                extra={"extra_fields": {"fallback": str(self._fallback)}},
            )
            return self._fallback

        rate = _parse_rate(raw)
        if rate is None:
            logger.warning(
                "exchange rate missing or invalid, using fallback",
                extra={"extra_fields": {"fallback": str(self._fallback)}},
            )
            return self._fallback
        return rate

    def set_rate(self, rate: Decimal | str | float) -> Decimal:
        """Persist a new rate. Raises ValueError for non-positive values."""
        parsed = _parse_rate(str(rate))
        if parsed is None:
            raise ValueError(f"exchange rate must be a positive number, got {rate!r}")
        self._store.set_config(EXCHANGE_RATE_KEY, str(parsed))
        logger.info(
            "exchange rate updated",
            extra={"extra_fields": {"rate": str(parsed)}},
        )
        return parsed
