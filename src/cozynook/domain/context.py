"""Explicit application state shared by the booking operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from cozynook.domain.models import HOUSE_ID, BookingStore
from cozynook.domain.pricing import ExchangeRateSource
from cozynook.infra.time import utc_now

if TYPE_CHECKING:
    from cozynook.paychangu.client import PayChanguClient


@dataclass
class BookingContext:
    """Collaborators for one running service (or one test).

    Attributes:
        store: Persistence for units, bookings, payment logs and config.
        rates: Exchange rate source (fresh read per pricing call).
        gateway: Hosted checkout client; None when payments are not configured.
        house_id: The property's whole-house unit id.
        pending_ttl_minutes: Age after which unpaid bookings are reaped.
        webhook_secret: Shared secret for webhook signatures.
        allow_unsigned_webhooks: Accept unsigned webhooks (degraded/test mode).
        callback_url: Public webhook URL handed to the gateway.
        return_base_url: Origin the guest returns to after checkout.
        clock: Source of "now" (UTC).
    """

    store: BookingStore
    rates: ExchangeRateSource
    gateway: PayChanguClient | None = None
    house_id: str = HOUSE_ID
    pending_ttl_minutes: int = 30
    webhook_secret: str | None = None
    allow_unsigned_webhooks: bool = False
    callback_url: str = "http://localhost:8000/webhooks/paychangu"
    return_base_url: str = "http://localhost:3000"
    clock: Callable[[], datetime] = field(default=utc_now)
