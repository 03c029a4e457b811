"""Postgres connections for the booking store (psycopg2, raw SQL).

Every store call opens a short transaction with txn(); nothing holds a
connection between requests, so a webhook and a checkout never share one.
"""

import os
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

APPLICATION_NAME = "cozynook-booking"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5


def _connect_timeout() -> int:
    raw = os.environ.get("DB_CONNECT_TIMEOUT_SECONDS", "").strip()
    return int(raw) if raw.isdigit() else DEFAULT_CONNECT_TIMEOUT_SECONDS


def get_conn(dsn: str | None = None) -> PgConnection:
    """Open a new connection.

    Args:
        dsn: Connection string. Defaults to DATABASE_URL.

    Raises:
        RuntimeError: If no DSN is given and DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = dsn or os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")
    return psycopg2.connect(
        dsn,
        application_name=APPLICATION_NAME,
        connect_timeout=_connect_timeout(),
    )


@contextmanager
def txn(conn: PgConnection | None = None, *, dsn: str | None = None) -> Iterator[PgCursor]:
    """Run one short transaction and yield its cursor.

    Commits on success and rolls back on any exception (including the
    exclusion-constraint violation a conflicting confirm raises). A
    connection opened here is closed on exit; a passed-in one is left open.

    Example:
        with txn(dsn=dsn) as cur:
            cur.execute("UPDATE bookings SET status = 'cancelled' WHERE id = %s::uuid", (bid,))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn(dsn)

    try:
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()
