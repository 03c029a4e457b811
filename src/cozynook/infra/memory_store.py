"""In-process booking store for local development and tests (STORE_BACKEND=memory).

Mirrors the Postgres store's guarantees: conditional status updates and a
refusal to confirm a booking that would overlap another confirmed one.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable

from cozynook.domain.availability import ranges_overlap
from cozynook.domain.models import (
    Booking,
    BookingStatus,
    InventoryUnit,
    NewBooking,
    PaymentLog,
    StoreConflictError,
    UnitKind,
    default_units,
    payment_status_after,
)


class InMemoryBookingStore:
    """Thread-safe dictionary-backed implementation of BookingStore."""

    def __init__(self, units: Iterable[InventoryUnit] | None = None) -> None:
        self._lock = threading.RLock()
        self._units: dict[str, InventoryUnit] = {
            u.id: u for u in (units if units is not None else default_units())
        }
        self._bookings: dict[str, Booking] = {}
        self._payment_logs: dict[str, PaymentLog] = {}
        self._config: dict[str, str] = {}

    # -- units -------------------------------------------------------------

    def get_unit(self, unit_id: str) -> InventoryUnit | None:
        return self._units.get(unit_id)

    def list_units(self) -> list[InventoryUnit]:
        return list(self._units.values())

    def upsert_unit(self, unit: InventoryUnit) -> None:
        with self._lock:
            self._units[unit.id] = unit

    # -- bookings ----------------------------------------------------------

    def find_confirmed_overlapping(
        self,
        check_in: date,
        check_out: date,
        *,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        with self._lock:
            return [
                b
                for b in self._bookings.values()
                if b.status is BookingStatus.CONFIRMED
                and b.id != exclude_booking_id
                and ranges_overlap(b.check_in, b.check_out, check_in, check_out)
            ]

    def insert_booking(self, new: NewBooking, *, created_at: datetime) -> Booking:
        booking = Booking(
            id=uuid.uuid4().hex,
            user_id=new.user_id,
            unit_id=new.unit_id,
            check_in=new.check_in,
            check_out=new.check_out,
            status=BookingStatus.PENDING,
            total_amount=new.total_amount,
            guest_count=new.guest_count,
            created_at=created_at,
        )
        with self._lock:
            self._bookings[booking.id] = booking
        return booking

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def _is_whole_house(self, unit_id: str) -> bool:
        unit = self._units.get(unit_id)
        return unit is not None and unit.kind is UnitKind.WHOLE_HOUSE

    def _collides(self, candidate: Booking) -> bool:
        for other in self.find_confirmed_overlapping(
            candidate.check_in, candidate.check_out, exclude_booking_id=candidate.id
        ):
            if other.unit_id == candidate.unit_id:
                return True
            if self._is_whole_house(other.unit_id) != self._is_whole_house(candidate.unit_id):
                return True
        return False

    def transition_status(
        self,
        booking_id: str,
        *,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None or booking.status is not from_status:
                return False
            updated = replace(booking, status=to_status)
            if to_status is BookingStatus.CONFIRMED and self._collides(updated):
                raise StoreConflictError(
                    f"Booking {booking_id} overlaps a confirmed booking"
                )
            self._bookings[booking_id] = updated
            return True

    def assign_user(self, booking_id: str, user_id: str) -> bool:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None or booking.user_id not in (None, user_id):
                return False
            self._bookings[booking_id] = replace(booking, user_id=user_id)
            return True

    def list_bookings_for_user(self, user_id: str) -> list[Booking]:
        with self._lock:
            found = [b for b in self._bookings.values() if b.user_id == user_id]
        return sorted(found, key=lambda b: b.created_at, reverse=True)

    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        with self._lock:
            return [
                b
                for b in self._bookings.values()
                if b.status is BookingStatus.PENDING and b.created_at < cutoff
            ]

    # -- payment logs ------------------------------------------------------

    def upsert_payment_log(self, log: PaymentLog) -> None:
        with self._lock:
            existing = self._payment_logs.get(log.tx_ref)
            if existing is not None and (
                payment_status_after(existing.status, log.status) is not log.status
            ):
                return
            self._payment_logs[log.tx_ref] = log

    def get_payment_log(self, tx_ref: str) -> PaymentLog | None:
        return self._payment_logs.get(tx_ref)

    def list_payment_logs(self, booking_id: str) -> list[PaymentLog]:
        with self._lock:
            return [p for p in self._payment_logs.values() if p.booking_id == booking_id]

    # -- site config -------------------------------------------------------

    def get_config(self, key: str) -> str | None:
        return self._config.get(key)

    def set_config(self, key: str, value: str) -> None:
        with self._lock:
            self._config[key] = value
