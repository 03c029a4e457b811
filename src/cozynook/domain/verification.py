"""Fallback confirmation for guests returning from checkout.

Webhook delivery is not guaranteed, so the return page polls the booking.
Absence of a signal is not a failure: once the wait window closes the
guest sees "verifying", never "failed".
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable

from cozynook.domain.models import Booking, BookingStatus, BookingStore

DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_INTERVAL_SECONDS = 2.0


class VerificationState(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    VERIFYING = "verifying"


def verification_state(booking: Booking) -> VerificationState:
    if booking.status is BookingStatus.CONFIRMED:
        return VerificationState.CONFIRMED
    if booking.status is BookingStatus.CANCELLED:
        return VerificationState.CANCELLED
    return VerificationState.VERIFYING


def wait_for_confirmation(
    store: BookingStore,
    booking_id: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> VerificationState:
    """Poll a booking until it leaves pending or ``timeout`` elapses.

    Returns VERIFYING if the booking is still pending (or not visible yet)
    when the window closes.
    """
    deadline = monotonic() + timeout
    while True:
        booking = store.get_booking(booking_id)
        if booking is not None:
            state = verification_state(booking)
            if state is not VerificationState.VERIFYING:
                return state

        remaining = deadline - monotonic()
        if remaining <= 0:
            return VerificationState.VERIFYING
        sleep(min(interval, remaining))
