"""Expire stale pending bookings.

A pending booking whose guest abandoned checkout (or whose webhook never
arrived) is cancelled once it is older than the configured TTL. Each
booking goes through cancel_booking, so a booking confirmed by a late
webhook between listing and cancelling is left alone.
"""

from __future__ import annotations

from datetime import timedelta

from cozynook.domain.bookings import (
    CancelOutcome,
    InvalidTransitionError,
    cancel_booking,
)
from cozynook.domain.context import BookingContext
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)

EXPIRY_REASON = "pending_ttl_expired"


def expire_stale_pending(ctx: BookingContext, *, ttl_minutes: int | None = None) -> dict:
    """Cancel pending bookings created more than ``ttl_minutes`` ago.

    Args:
        ctx: Booking context.
        ttl_minutes: Override for ctx.pending_ttl_minutes.

    Returns:
        Dict with counts:
        {"scanned": int, "expired": int, "skipped": int, "expired_ids": list[str]}

    Raises:
        ValueError: If the TTL is not positive.
    """
    ttl = ttl_minutes if ttl_minutes is not None else ctx.pending_ttl_minutes
    if ttl <= 0:
        raise ValueError("ttl_minutes must be positive")

    cutoff = ctx.clock() - timedelta(minutes=ttl)
    stale = ctx.store.list_pending_created_before(cutoff)

    expired_ids: list[str] = []
    skipped = 0
    for booking in stale:
        try:
            result = cancel_booking(ctx, booking.id, reason=EXPIRY_REASON)
        except InvalidTransitionError:
            # Confirmed since the scan
            skipped += 1
            continue
        if result.outcome is CancelOutcome.CANCELLED:
            expired_ids.append(booking.id)
        else:
            skipped += 1

    logger.info(
        "stale pending bookings expired",
        extra={
            "extra_fields": {
                "cutoff": cutoff.isoformat(),
                "ttl_minutes": ttl,
                "scanned": len(stale),
                "expired": len(expired_ids),
                "skipped": skipped,
            }
        },
    )
    return {
        "scanned": len(stale),
        "expired": len(expired_ids),
        "skipped": skipped,
        "expired_ids": expired_ids,
    }
