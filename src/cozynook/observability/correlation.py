"""Correlation IDs.

One id follows a guest's action through the HTTP request, the gateway call
and every log line emitted on the way. Gateway callbacks arrive as new
requests and get their own id; the tx_ref links them back to the booking.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Longest caller-supplied id we echo back
_MAX_LENGTH = 128

_current: ContextVar[str] = ContextVar("cozynook_correlation_id", default="")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str:
    """Correlation id of the current request, or "" outside one."""
    return _current.get()


def accept_correlation_id(header_value: str | None) -> str:
    """Reuse the caller's id when it looks sane, otherwise mint a new one."""
    value = (header_value or "").strip()
    if not value or len(value) > _MAX_LENGTH or not value.isprintable():
        return new_correlation_id()
    return value


@contextmanager
def correlation_scope(cid: str) -> Iterator[str]:
    """Bind ``cid`` for the duration of the block."""
    token = _current.set(cid)
    try:
        yield cid
    finally:
        _current.reset(token)
