"""Payment logs repository - one row per tx_ref.

Rows with status 'refund_required' are the audit trail for payments that
were captured but could not be turned into a confirmed stay.
"""

from __future__ import annotations

import json
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from cozynook.domain.models import PaymentLog, PaymentStatus
from cozynook.infra.repositories.bookings_repository import as_uuid


def upsert_payment_log(cur: PgCursor, log: PaymentLog) -> None:
    """Insert or update the log row for ``log.tx_ref`` (UNIQUE).

    An existing 'success' row only accepts 'refund_required'; an existing
    'refund_required' row is never rewritten (see payment_status_after).
    """
    cur.execute(
        """
        INSERT INTO payment_logs (
            booking_id, tx_ref, amount, currency, status, gateway_response, created_at
        )
        VALUES (%s, %s, %s, %s, %s, %s::jsonb, COALESCE(%s, now()))
        ON CONFLICT (tx_ref) DO UPDATE
        SET amount = EXCLUDED.amount,
            currency = EXCLUDED.currency,
            status = EXCLUDED.status,
            gateway_response = EXCLUDED.gateway_response,
            updated_at = now()
        WHERE payment_logs.status = EXCLUDED.status
           OR payment_logs.status NOT IN ('success', 'refund_required')
           OR (payment_logs.status = 'success' AND EXCLUDED.status = 'refund_required')
        """,
        (
            log.booking_id,
            log.tx_ref,
            log.amount,
            log.currency,
            log.status.value,
            json.dumps(log.gateway_response, default=str),
            log.created_at,
        ),
    )


def get_payment_log(cur: PgCursor, tx_ref: str) -> PaymentLog | None:
    cur.execute(
        """
        SELECT booking_id, tx_ref, amount, currency, status, gateway_response, created_at
        FROM payment_logs
        WHERE tx_ref = %s
        """,
        (tx_ref,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _row_to_log(row)


def list_for_booking(cur: PgCursor, booking_id: str) -> list[PaymentLog]:
    """Every payment attempt recorded against a booking, oldest first."""
    key = as_uuid(booking_id)
    if key is None:
        return []
    cur.execute(
        """
        SELECT booking_id, tx_ref, amount, currency, status, gateway_response, created_at
        FROM payment_logs
        WHERE booking_id = %s::uuid
        ORDER BY created_at
        """,
        (key,),
    )
    return [_row_to_log(row) for row in cur.fetchall()]


def _row_to_log(row: tuple[Any, ...]) -> PaymentLog:
    return PaymentLog(
        booking_id=str(row[0]),
        tx_ref=row[1],
        amount=int(row[2]),
        currency=row[3],
        status=PaymentStatus(row[4]),
        gateway_response=row[5] or {},
        created_at=row[6],
    )
