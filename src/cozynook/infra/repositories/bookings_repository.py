"""Bookings repository - persistence for booking records.

Uses raw SQL with psycopg2 (no ORM). Booking ids are uuids; lookups compare
against the primary key as uuid, and a malformed id simply matches nothing.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from cozynook.domain.models import Booking, BookingStatus, NewBooking

_COLUMNS = """
    id, user_id, unit_id, check_in, check_out,
    status, total_amount, guest_count, created_at
"""


def as_uuid(booking_id: str | None) -> str | None:
    """Canonical uuid text for ``booking_id``, or None if it is not a uuid."""
    try:
        return str(uuid.UUID(booking_id))
    except (TypeError, ValueError, AttributeError):
        return None


def row_to_booking(row: tuple[Any, ...]) -> Booking:
    return Booking(
        id=str(row[0]),
        user_id=row[1],
        unit_id=row[2],
        check_in=row[3],
        check_out=row[4],
        status=BookingStatus(row[5]),
        total_amount=int(row[6]),
        guest_count=int(row[7]),
        created_at=row[8],
    )


def insert_booking(cur: PgCursor, new: NewBooking, *, created_at: datetime) -> Booking:
    """Insert a pending booking.

    ``is_whole_house`` is written from the resolved unit; the house-vs-room
    exclusion constraint reads it.

    Args:
        cur: Database cursor (within transaction).
        new: Values for the new row.
        created_at: Creation timestamp.

    Returns:
        The stored booking.
    """
    cur.execute(
        f"""
        INSERT INTO bookings (
            user_id, unit_id, is_whole_house, check_in, check_out,
            status, total_amount, guest_count, created_at
        )
        VALUES (%s, %s, %s, %s, %s, 'pending', %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (
            new.user_id,
            new.unit_id,
            new.is_whole_house,
            new.check_in,
            new.check_out,
            new.total_amount,
            new.guest_count,
            created_at,
        ),
    )
    return row_to_booking(cur.fetchone())


def get_booking(cur: PgCursor, booking_id: str) -> Booking | None:
    key = as_uuid(booking_id)
    if key is None:
        return None
    cur.execute(f"SELECT {_COLUMNS} FROM bookings WHERE id = %s::uuid", (key,))
    row = cur.fetchone()
    return row_to_booking(row) if row else None


def find_confirmed_overlapping(
    cur: PgCursor,
    *,
    check_in: date,
    check_out: date,
    exclude_booking_id: str | None = None,
) -> list[Booking]:
    """Confirmed bookings overlapping [check_in, check_out).

    Overlap: existing.check_in < check_out AND existing.check_out > check_in.
    """
    conditions = [
        "status = 'confirmed'",
        "check_in < %s",
        "check_out > %s",
    ]
    params: list[Any] = [check_out, check_in]

    excluded = as_uuid(exclude_booking_id)
    if excluded is not None:
        conditions.append("id <> %s::uuid")
        params.append(excluded)

    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM bookings
        WHERE {" AND ".join(conditions)}
        ORDER BY check_in
        """,
        params,
    )
    return [row_to_booking(row) for row in cur.fetchall()]


def update_status(
    cur: PgCursor,
    booking_id: str,
    *,
    from_status: BookingStatus,
    to_status: BookingStatus,
) -> bool:
    """Conditionally update status. Returns True if a row changed."""
    key = as_uuid(booking_id)
    if key is None:
        return False
    cur.execute(
        """
        UPDATE bookings
        SET status = %s, updated_at = now()
        WHERE id = %s::uuid AND status = %s
        """,
        (to_status.value, key, from_status.value),
    )
    return cur.rowcount == 1


def set_owner(cur: PgCursor, booking_id: str, user_id: str) -> bool:
    """Set user_id when unset (or already equal). Returns True on success."""
    key = as_uuid(booking_id)
    if key is None:
        return False
    cur.execute(
        """
        UPDATE bookings
        SET user_id = %s, updated_at = now()
        WHERE id = %s::uuid AND (user_id IS NULL OR user_id = %s)
        """,
        (user_id, key, user_id),
    )
    return cur.rowcount == 1


def list_for_user(cur: PgCursor, user_id: str) -> list[Booking]:
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM bookings
        WHERE user_id = %s
        ORDER BY created_at DESC
        """,
        (user_id,),
    )
    return [row_to_booking(row) for row in cur.fetchall()]


def list_pending_created_before(cur: PgCursor, cutoff: datetime) -> list[Booking]:
    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM bookings
        WHERE status = 'pending' AND created_at < %s
        ORDER BY created_at
        """,
        (cutoff,),
    )
    return [row_to_booking(row) for row in cur.fetchall()]
