"""Booking state machine.

    pending --(verified payment, slot still free)--> confirmed
    pending --(payment failed / expired / slot lost)--> cancelled

pending is the only initial state; confirmed and cancelled are terminal.
Replaying a transition into the state a booking already has is a no-op.

Creation is check-then-act against the store: pending bookings do not
occupy the calendar, so two guests may both hold pending bookings for the
same nights. confirm_booking re-runs availability (ignoring the booking
itself) and force-cancels the loser instead of confirming it. On Postgres an
exclusion constraint on confirmed rows backs this up atomically.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from cozynook.domain.availability import is_available, validate_date_range
from cozynook.domain.context import BookingContext
from cozynook.domain.models import (
    Booking,
    BookingStatus,
    InventoryUnit,
    NewBooking,
    StoreConflictError,
)
from cozynook.domain.pricing import Quote, compute_total
from cozynook.domain.tier import ENTRY_TIER, TierDetails, calculate_tier
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


class BookingNotFoundError(Exception):
    """Booking does not exist."""


class UnitNotFoundError(Exception):
    """Inventory unit does not exist."""


class InvalidTransitionError(Exception):
    """Requested status change is not allowed from the current status."""

    def __init__(self, booking_id: str, current: BookingStatus, requested: BookingStatus) -> None:
        self.booking_id = booking_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Booking {booking_id} cannot move from {current.value} to {requested.value}"
        )


class InvalidGuestCountError(ValueError):
    """Guest count must be at least 1."""


class BookingOwnershipError(Exception):
    """Booking already belongs to another guest."""


def can_transition(current: BookingStatus, requested: BookingStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class CreateBookingResult:
    """Outcome of create_booking. ``available=False`` is a normal outcome."""

    available: bool
    booking: Booking | None = None
    quote: Quote | None = None
    tier: TierDetails | None = None


class ConfirmOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    # Slot taken by another confirmed booking; this one was cancelled
    CONFLICT_CANCELLED = "conflict_cancelled"


class CancelOutcome(str, Enum):
    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"


@dataclass(frozen=True)
class ConfirmResult:
    outcome: ConfirmOutcome
    booking: Booking


@dataclass(frozen=True)
class CancelResult:
    outcome: CancelOutcome
    booking: Booking


def resolve_unit(ctx: BookingContext, unit_id: str) -> InventoryUnit:
    unit = ctx.store.get_unit(unit_id)
    if unit is None:
        raise UnitNotFoundError(f"Unit not found: {unit_id}")
    return unit


def get_booking(ctx: BookingContext, booking_id: str) -> Booking:
    booking = ctx.store.get_booking(booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking not found: {booking_id}")
    return booking


def guest_tier(ctx: BookingContext, user_id: str | None) -> TierDetails:
    """Tier for a guest; anonymous checkouts get the entry tier."""
    if not user_id:
        return ENTRY_TIER
    return calculate_tier(ctx.store.list_bookings_for_user(user_id))


def quote_stay(
    ctx: BookingContext,
    *,
    unit_id: str,
    check_in: date,
    check_out: date,
    user_id: str | None = None,
) -> tuple[Quote, TierDetails]:
    """Price a stay without writing anything."""
    validate_date_range(check_in, check_out)
    unit = resolve_unit(ctx, unit_id)
    tier = guest_tier(ctx, user_id)
    return compute_total(unit, check_in, check_out, tier), tier


def check_unit_availability(
    ctx: BookingContext,
    *,
    unit_id: str,
    check_in: date,
    check_out: date,
) -> bool:
    validate_date_range(check_in, check_out)
    unit = resolve_unit(ctx, unit_id)
    return is_available(ctx.store, unit, check_in, check_out, house_id=ctx.house_id)


def create_booking(
    ctx: BookingContext,
    *,
    unit_id: str,
    check_in: date,
    check_out: date,
    guest_count: int,
    user_id: str | None = None,
) -> CreateBookingResult:
    """Create a pending booking after a fresh availability check.

    Args:
        ctx: Booking context.
        unit_id: Unit being booked.
        check_in: First night (inclusive).
        check_out: Departure day (exclusive).
        guest_count: Number of guests (>= 1).
        user_id: Owning guest, if already authenticated.

    Returns:
        CreateBookingResult; ``available`` is False when the slot is taken.

    Raises:
        InvalidDateRangeError: If check_in >= check_out.
        InvalidGuestCountError: If guest_count < 1.
        UnitNotFoundError: If the unit does not exist.
    """
    validate_date_range(check_in, check_out)
    if guest_count < 1:
        raise InvalidGuestCountError("guest_count must be at least 1")

    unit = resolve_unit(ctx, unit_id)

    if not is_available(ctx.store, unit, check_in, check_out, house_id=ctx.house_id):
        return CreateBookingResult(available=False)

    tier = guest_tier(ctx, user_id)
    quote = compute_total(unit, check_in, check_out, tier)

    booking = ctx.store.insert_booking(
        NewBooking(
            user_id=user_id,
            unit_id=unit.id,
            check_in=check_in,
            check_out=check_out,
            total_amount=quote.total,
            guest_count=guest_count,
            is_whole_house=unit.is_whole_house,
        ),
        created_at=ctx.clock(),
    )

    logger.info(
        "booking created",
        extra={
            "extra_fields": {
                "booking_id": booking.id,
                "unit_id": unit.id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "nights": quote.nights,
                "total_amount": quote.total,
                "tier": tier.level,
            }
        },
    )
    return CreateBookingResult(available=True, booking=booking, quote=quote, tier=tier)


def _force_cancel_after_conflict(ctx: BookingContext, booking: Booking) -> ConfirmResult:
    moved = ctx.store.transition_status(
        booking.id,
        from_status=BookingStatus.PENDING,
        to_status=BookingStatus.CANCELLED,
    )
    current = get_booking(ctx, booking.id)
    if not moved and current.status is BookingStatus.CONFIRMED:
        # Another delivery confirmed it in between
        return ConfirmResult(ConfirmOutcome.ALREADY_CONFIRMED, current)

    logger.error(
        "booking slot lost before confirmation, booking cancelled",
        extra={
            "extra_fields": {
                "booking_id": booking.id,
                "unit_id": booking.unit_id,
                "check_in": booking.check_in.isoformat(),
                "check_out": booking.check_out.isoformat(),
            }
        },
    )
    return ConfirmResult(ConfirmOutcome.CONFLICT_CANCELLED, current)


def confirm_booking(ctx: BookingContext, booking_id: str) -> ConfirmResult:
    """Move a pending booking to confirmed after re-validating its slot.

    Idempotent: an already confirmed booking is returned unchanged.
    If a confirmed booking now overlaps, the booking is cancelled and the
    outcome is CONFLICT_CANCELLED; callers must flag the payment for refund.

    Raises:
        BookingNotFoundError: If the booking does not exist.
        InvalidTransitionError: If the booking was already cancelled.
    """
    booking = get_booking(ctx, booking_id)

    if booking.status is BookingStatus.CONFIRMED:
        return ConfirmResult(ConfirmOutcome.ALREADY_CONFIRMED, booking)
    if not can_transition(booking.status, BookingStatus.CONFIRMED):
        raise InvalidTransitionError(booking.id, booking.status, BookingStatus.CONFIRMED)

    unit = resolve_unit(ctx, booking.unit_id)
    still_free = is_available(
        ctx.store,
        unit,
        booking.check_in,
        booking.check_out,
        house_id=ctx.house_id,
        exclude_booking_id=booking.id,
    )
    if not still_free:
        return _force_cancel_after_conflict(ctx, booking)

    try:
        moved = ctx.store.transition_status(
            booking.id,
            from_status=BookingStatus.PENDING,
            to_status=BookingStatus.CONFIRMED,
        )
    except StoreConflictError:
        return _force_cancel_after_conflict(ctx, booking)

    current = get_booking(ctx, booking.id)
    if not moved:
        if current.status is BookingStatus.CONFIRMED:
            return ConfirmResult(ConfirmOutcome.ALREADY_CONFIRMED, current)
        raise InvalidTransitionError(booking.id, current.status, BookingStatus.CONFIRMED)

    logger.info(
        "booking confirmed",
        extra={"extra_fields": {"booking_id": booking.id, "unit_id": booking.unit_id}},
    )
    return ConfirmResult(ConfirmOutcome.CONFIRMED, current)


def cancel_booking(ctx: BookingContext, booking_id: str, *, reason: str) -> CancelResult:
    """Move a pending booking to cancelled. Idempotent on cancelled bookings.

    Raises:
        BookingNotFoundError: If the booking does not exist.
        InvalidTransitionError: If the booking is confirmed.
    """
    booking = get_booking(ctx, booking_id)

    if booking.status is BookingStatus.CANCELLED:
        return CancelResult(CancelOutcome.ALREADY_CANCELLED, booking)
    if not can_transition(booking.status, BookingStatus.CANCELLED):
        raise InvalidTransitionError(booking.id, booking.status, BookingStatus.CANCELLED)

    moved = ctx.store.transition_status(
        booking.id,
        from_status=BookingStatus.PENDING,
        to_status=BookingStatus.CANCELLED,
    )
    current = get_booking(ctx, booking.id)
    if not moved:
        if current.status is BookingStatus.CANCELLED:
            return CancelResult(CancelOutcome.ALREADY_CANCELLED, current)
        raise InvalidTransitionError(booking.id, current.status, BookingStatus.CANCELLED)

    logger.info(
        "booking cancelled",
        extra={"extra_fields": {"booking_id": booking.id, "reason": reason}},
    )
    return CancelResult(CancelOutcome.CANCELLED, current)


def assign_user(ctx: BookingContext, booking_id: str, user_id: str) -> Booking:
    """Attach an owner to a booking made before the guest signed in.

    Re-assigning the same owner is a no-op.

    Raises:
        BookingNotFoundError: If the booking does not exist.
        BookingOwnershipError: If the booking belongs to someone else.
    """
    booking = get_booking(ctx, booking_id)
    if booking.user_id == user_id:
        return booking
    if booking.user_id is not None or not ctx.store.assign_user(booking.id, user_id):
        raise BookingOwnershipError(f"Booking {booking_id} already has an owner")
    return get_booking(ctx, booking.id)
