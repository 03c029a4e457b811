"""Availability lookups for the date picker.

Clients debounce these calls and send an increasing request_seq; the value
is echoed so a response for an older date range can be dropped client-side.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from cozynook.api.deps import get_booking_context
from cozynook.domain.availability import InvalidDateRangeError
from cozynook.domain.bookings import UnitNotFoundError, check_unit_availability
from cozynook.domain.context import BookingContext

router = APIRouter(tags=["availability"])


@router.get("/units")
def list_units(ctx: BookingContext = Depends(get_booking_context)) -> dict:
    """List bookable units."""
    return {
        "units": [
            {"id": u.id, "kind": u.kind.value, "price": u.price, "name": u.name}
            for u in ctx.store.list_units()
        ]
    }


@router.get("/availability")
def get_availability(
    unit_id: str = Query(..., description="Inventory unit id"),
    check_in: date = Query(..., description="First night (inclusive)"),
    check_out: date = Query(..., description="Departure day (exclusive)"),
    request_seq: int | None = Query(None, ge=0, description="Client request sequence"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    """Check whether a unit is free for a date range (confirmed bookings only)."""
    try:
        available = check_unit_availability(
            ctx, unit_id=unit_id, check_in=check_in, check_out=check_out
        )
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail="Unit not found") from e

    return {
        "unit_id": unit_id,
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "available": available,
        "request_seq": request_seq,
    }
