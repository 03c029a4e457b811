"""Availability Engine - whole-house / room occupancy exclusivity.

Overlap formula:  (existing.check_in < check_out) AND (existing.check_out > check_in)
Strict inequality: a check-out day may be the next guest's check-in day.

Only confirmed bookings occupy a unit. Pending bookings are invisible here;
the race this allows is closed at confirm time (see bookings.confirm_booking).
"""

from __future__ import annotations

from datetime import date

from cozynook.domain.models import BookingStore, InventoryUnit
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)


class InvalidDateRangeError(ValueError):
    """Raised when check_in is not strictly before check_out."""


def validate_date_range(check_in: date, check_out: date) -> None:
    """Reject zero-night and inverted ranges before any store query."""
    if check_in >= check_out:
        raise InvalidDateRangeError(
            f"check_in ({check_in}) must be before check_out ({check_out})"
        )


def ranges_overlap(a_in: date, a_out: date, b_in: date, b_out: date) -> bool:
    """Half-open interval overlap: [a_in, a_out) vs [b_in, b_out)."""
    return a_in < b_out and a_out > b_in


def occupied_unit_ids(
    store: BookingStore,
    check_in: date,
    check_out: date,
    *,
    exclude_booking_id: str | None = None,
) -> set[str]:
    """Unit ids held by confirmed bookings overlapping [check_in, check_out)."""
    bookings = store.find_confirmed_overlapping(
        check_in, check_out, exclude_booking_id=exclude_booking_id
    )
    return {b.unit_id for b in bookings}


def unit_is_free(unit: InventoryUnit, occupied: set[str], house_id: str) -> bool:
    """Apply the exclusivity rule to an occupied-unit set.

    The whole house needs every unit free. A room needs itself and the
    whole house free; other rooms do not matter.
    """
    if unit.is_whole_house:
        return not occupied
    return house_id not in occupied and unit.id not in occupied


def is_available(
    store: BookingStore,
    unit: InventoryUnit,
    check_in: date,
    check_out: date,
    *,
    house_id: str,
    exclude_booking_id: str | None = None,
) -> bool:
    """Return True if ``unit`` is free for [check_in, check_out).

    Pure read: no locking, no reservation. Defined only for check_in < check_out.

    Args:
        store: Booking store.
        unit: Resolved inventory unit.
        check_in: First night (inclusive).
        check_out: Departure day (exclusive).
        house_id: Id of the property's whole-house unit.
        exclude_booking_id: Booking to ignore (the one being confirmed).

    Raises:
        InvalidDateRangeError: If check_in >= check_out.
    """
    validate_date_range(check_in, check_out)
    occupied = occupied_unit_ids(
        store, check_in, check_out, exclude_booking_id=exclude_booking_id
    )
    available = unit_is_free(unit, occupied, house_id)

    if not available:
        logger.info(
            "unit unavailable",
            extra={
                "extra_fields": {
                    "unit_id": unit.id,
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                    "occupied_units": sorted(occupied),
                    "excluded_booking_id": exclude_booking_id,
                }
            },
        )
    return available
