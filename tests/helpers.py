"""Shared test helpers (not fixtures)."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

from cozynook.domain.bookings import confirm_booking, create_booking
from cozynook.domain.context import BookingContext
from cozynook.domain.models import Booking
from cozynook.paychangu.client import CheckoutRequest
from cozynook.paychangu.webhook import compute_signature

WEBHOOK_SECRET = "whsec_test_cozynook"

HOUSE = "listing_house_01"
EXEC_ROOM = "listing_exec_02"
DELUXE_ROOM = "listing_deluxe_03"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway:
    """Records checkout requests and returns a fixed URL (or raises ``error``)."""

    def __init__(self, checkout_url: str = "https://checkout.paychangu.test/abc") -> None:
        self.checkout_url = checkout_url
        self.requests: list[CheckoutRequest] = []
        self.error: Exception | None = None

    def create_checkout(self, request: CheckoutRequest, *, correlation_id=None) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.checkout_url


def d(day: int, month: int = 3) -> date:
    return date(2026, month, day)


def pending(ctx: BookingContext, unit_id: str, check_in: date, check_out: date, **kw) -> Booking:
    """Create a pending booking, failing the test if the slot is taken."""
    result = create_booking(
        ctx,
        unit_id=unit_id,
        check_in=check_in,
        check_out=check_out,
        guest_count=kw.pop("guest_count", 2),
        **kw,
    )
    assert result.available, f"{unit_id} unexpectedly unavailable"
    return result.booking


def confirmed(ctx: BookingContext, unit_id: str, check_in: date, check_out: date, **kw) -> Booking:
    booking = pending(ctx, unit_id, check_in, check_out, **kw)
    return confirm_booking(ctx, booking.id).booking


def webhook_body(tx_ref: str, status: str = "success", amount: int = 472500, **extra) -> bytes:
    payload = {"status": status, "tx_ref": tx_ref, "amount": amount, "currency": "MWK"}
    payload.update(extra)
    return json.dumps(payload).encode()


def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Webhook-Signature": compute_signature(body, secret),
    }
