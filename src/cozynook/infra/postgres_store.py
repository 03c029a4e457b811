"""Postgres-backed BookingStore (STORE_BACKEND=postgres).

Each call runs in its own short transaction. Confirmed bookings are guarded
by EXCLUDE constraints (see migrations), so a conflicting confirm fails
atomically even when two webhooks race.
"""

from __future__ import annotations

from datetime import date, datetime

from psycopg2 import errors as pg_errors

from cozynook.domain.models import (
    Booking,
    BookingStatus,
    InventoryUnit,
    NewBooking,
    PaymentLog,
    StoreConflictError,
)
from cozynook.infra.db import txn
from cozynook.infra.repositories import bookings_repository as bookings
from cozynook.infra.repositories import payment_logs_repository as payment_logs
from cozynook.infra.repositories import site_repository as site
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)


class PostgresBookingStore:
    def __init__(self, dsn: str | None = None) -> None:
        self._dsn = dsn

    def get_unit(self, unit_id: str) -> InventoryUnit | None:
        with txn(dsn=self._dsn) as cur:
            return site.get_unit(cur, unit_id)

    def list_units(self) -> list[InventoryUnit]:
        with txn(dsn=self._dsn) as cur:
            return site.list_units(cur)

    def find_confirmed_overlapping(
        self,
        check_in: date,
        check_out: date,
        *,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        with txn(dsn=self._dsn) as cur:
            return bookings.find_confirmed_overlapping(
                cur,
                check_in=check_in,
                check_out=check_out,
                exclude_booking_id=exclude_booking_id,
            )

    def insert_booking(self, new: NewBooking, *, created_at: datetime) -> Booking:
        with txn(dsn=self._dsn) as cur:
            return bookings.insert_booking(cur, new, created_at=created_at)

    def get_booking(self, booking_id: str) -> Booking | None:
        with txn(dsn=self._dsn) as cur:
            return bookings.get_booking(cur, booking_id)

    def transition_status(
        self,
        booking_id: str,
        *,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        try:
            with txn(dsn=self._dsn) as cur:
                return bookings.update_status(
                    cur, booking_id, from_status=from_status, to_status=to_status
                )
        except pg_errors.ExclusionViolation as e:
            logger.warning(
                "exclusion constraint rejected booking transition",
                extra={
                    "extra_fields": {
                        "booking_id": booking_id,
                        "to_status": to_status.value,
                        "constraint": getattr(e.diag, "constraint_name", None),
                    }
                },
            )
            raise StoreConflictError(
                f"Booking {booking_id} overlaps a confirmed booking"
            ) from e

    def assign_user(self, booking_id: str, user_id: str) -> bool:
        with txn(dsn=self._dsn) as cur:
            return bookings.set_owner(cur, booking_id, user_id)

    def list_bookings_for_user(self, user_id: str) -> list[Booking]:
        with txn(dsn=self._dsn) as cur:
            return bookings.list_for_user(cur, user_id)

    def list_pending_created_before(self, cutoff: datetime) -> list[Booking]:
        with txn(dsn=self._dsn) as cur:
            return bookings.list_pending_created_before(cur, cutoff)

    def upsert_payment_log(self, log: PaymentLog) -> None:
        with txn(dsn=self._dsn) as cur:
            payment_logs.upsert_payment_log(cur, log)

    def get_payment_log(self, tx_ref: str) -> PaymentLog | None:
        with txn(dsn=self._dsn) as cur:
            return payment_logs.get_payment_log(cur, tx_ref)

    def list_payment_logs(self, booking_id: str) -> list[PaymentLog]:
        with txn(dsn=self._dsn) as cur:
            return payment_logs.list_for_booking(cur, booking_id)

    def get_config(self, key: str) -> str | None:
        with txn(dsn=self._dsn) as cur:
            return site.get_config(cur, key)

    def set_config(self, key: str, value: str) -> None:
        with txn(dsn=self._dsn) as cur:
            site.set_config(cur, key, value)
