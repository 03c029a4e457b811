"""Booking core records and the store protocol they are persisted through."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol


class UnitKind(str, Enum):
    WHOLE_HOUSE = "whole_house"
    ROOM = "room"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    INITIATED = "initiated"
    SUCCESS = "success"
    FAILED = "failed"
    # Funds captured with no confirmed stay behind them
    REFUND_REQUIRED = "refund_required"


# Stored status -> statuses allowed to overwrite it. Unlisted statuses accept anything.
_PAYMENT_STATUS_OVERWRITES = {
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.REFUND_REQUIRED}),
    PaymentStatus.REFUND_REQUIRED: frozenset(),
}


def payment_status_after(current: PaymentStatus | None, incoming: PaymentStatus) -> PaymentStatus:
    """Status a payment log holds once ``incoming`` is reported for it.

    A captured payment keeps its record: ``success`` may only escalate to
    ``refund_required``, and ``refund_required`` is final. Late or
    out-of-order callbacks (a ``failed`` after the capture) leave it as is.
    """
    if current is None or current is incoming:
        return incoming
    allowed = _PAYMENT_STATUS_OVERWRITES.get(current)
    if allowed is None or incoming in allowed:
        return incoming
    return current


# The single property: one whole-house unit, rooms physically inside it
HOUSE_ID = "listing_house_01"
ROOM_IDS = ("listing_exec_02", "listing_deluxe_03", "listing_room3_04", "listing_room4_05")


@dataclass(frozen=True)
class InventoryUnit:
    id: str
    kind: UnitKind
    price: int
    name: str = ""

    @property
    def is_whole_house(self) -> bool:
        return self.kind is UnitKind.WHOLE_HOUSE


def default_units() -> list[InventoryUnit]:
    """The Cozy Nook catalogue: the whole house and its four rooms."""
    return [
        InventoryUnit(HOUSE_ID, UnitKind.WHOLE_HOUSE, 450, "Entire 4 Bedroomed House"),
        InventoryUnit(ROOM_IDS[0], UnitKind.ROOM, 150, "Executive Room"),
        InventoryUnit(ROOM_IDS[1], UnitKind.ROOM, 120, "Deluxe Room"),
        InventoryUnit(ROOM_IDS[2], UnitKind.ROOM, 90, "Room 3"),
        InventoryUnit(ROOM_IDS[3], UnitKind.ROOM, 90, "Room 4"),
    ]


@dataclass(frozen=True)
class Booking:
    id: str
    user_id: str | None
    unit_id: str
    check_in: date
    check_out: date
    status: BookingStatus
    total_amount: int
    guest_count: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "unit_id": self.unit_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "status": self.status.value,
            "total_amount": self.total_amount,
            "guest_count": self.guest_count,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class NewBooking:
    """Values for a booking row that has not been written yet."""

    user_id: str | None
    unit_id: str
    check_in: date
    check_out: date
    total_amount: int
    guest_count: int
    # Copied from the resolved unit; the house-vs-room exclusion reads it
    is_whole_house: bool


@dataclass(frozen=True)
class PaymentLog:
    booking_id: str
    tx_ref: str
    amount: int
    currency: str
    status: PaymentStatus
    gateway_response: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


class StoreConflictError(Exception):
    """The store refused a write because it would overlap a confirmed booking."""


class BookingStore(Protocol):
    """Persistence operations the booking core relies on.

    Implementations: PostgresBookingStore (production) and
    InMemoryBookingStore (dev/tests).
    """

    def get_unit(self, unit_id: str) -> InventoryUnit | None: ...

    def list_units(self) -> list[InventoryUnit]: ...

    def find_confirmed_overlapping(
        self,
        check_in: date,
        check_out: date,
        *,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]: ...

    def insert_booking(self, new: NewBooking, *, created_at: datetime) -> Booking: ...

    def get_booking(self, booking_id: str) -> Booking | None: ...

    def transition_status(
        self,
        booking_id: str,
        *,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """Conditionally move a booking between statuses.

        Returns False if the booking was not in ``from_status``.
        Raises StoreConflictError if the store rejects the new state.
        """
        ...

    def assign_user(self, booking_id: str, user_id: str) -> bool: ...

    def list_bookings_for_user(self, user_id: str) -> list[Booking]: ...

    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]: ...

    def upsert_payment_log(self, log: PaymentLog) -> None: ...

    def get_payment_log(self, tx_ref: str) -> PaymentLog | None: ...

    def list_payment_logs(self, booking_id: str) -> list[PaymentLog]: ...

    def get_config(self, key: str) -> str | None: ...

    def set_config(self, key: str, value: str) -> None: ...
