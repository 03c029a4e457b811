"""Booking endpoints: quote, create, read, status polling and guest history."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cozynook.api.deps import get_booking_context
from cozynook.domain.availability import InvalidDateRangeError
from cozynook.domain.bookings import (
    BookingNotFoundError,
    BookingOwnershipError,
    InvalidGuestCountError,
    UnitNotFoundError,
    assign_user,
    create_booking,
    get_booking,
    guest_tier,
    quote_stay,
)
from cozynook.domain.context import BookingContext
from cozynook.domain.pricing import HOME_CURRENCY, convert_amount
from cozynook.domain.verification import verification_state, wait_for_confirmation
from cozynook.observability.correlation import get_correlation_id
from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import safe_log_context

router = APIRouter(tags=["bookings"])

logger = get_logger(__name__)


class QuoteRequest(BaseModel):
    unit_id: str
    check_in: date
    check_out: date
    user_id: str | None = None


class CreateBookingRequest(BaseModel):
    unit_id: str
    check_in: date
    check_out: date
    guest_count: int = Field(1, ge=1)
    user_id: str | None = None


class AssignUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


@router.post("/quotes")
def quote(body: QuoteRequest, ctx: BookingContext = Depends(get_booking_context)) -> dict:
    """Price a stay (tier discount applied) without creating anything."""
    try:
        result, tier = quote_stay(
            ctx,
            unit_id=body.unit_id,
            check_in=body.check_in,
            check_out=body.check_out,
            user_id=body.user_id,
        )
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail="Unit not found") from e

    rate = ctx.rates.get_rate()
    return {
        "quote": result.to_dict(),
        "tier": tier.to_dict(),
        "converted": {
            "currency": HOME_CURRENCY,
            "exchange_rate": str(rate),
            "total": convert_amount(result.total, rate),
        },
    }


@router.post("/bookings", status_code=201)
def create(
    body: CreateBookingRequest,
    ctx: BookingContext = Depends(get_booking_context),
):
    """Create a pending booking.

    Returns:
        201 with the booking when the slot is free.
        409 with {"available": false} when it is not.
    """
    try:
        result = create_booking(
            ctx,
            unit_id=body.unit_id,
            check_in=body.check_in,
            check_out=body.check_out,
            guest_count=body.guest_count,
            user_id=body.user_id,
        )
    except (InvalidDateRangeError, InvalidGuestCountError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except UnitNotFoundError as e:
        raise HTTPException(status_code=404, detail="Unit not found") from e

    if not result.available:
        logger.info(
            "booking rejected: dates unavailable",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    unit_id=body.unit_id,
                )
            },
        )
        return JSONResponse(
            status_code=409,
            content={"available": False, "detail": "Selected dates are no longer available"},
        )

    return {
        "available": True,
        "booking": result.booking.to_dict(),
        "quote": result.quote.to_dict(),
        "tier": result.tier.to_dict(),
    }


@router.get("/bookings/{booking_id}")
def read_booking(
    booking_id: str = Path(..., description="Booking id"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    try:
        return get_booking(ctx, booking_id).to_dict()
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail="Booking not found") from e


@router.get("/bookings/{booking_id}/status")
def booking_status(
    booking_id: str = Path(..., description="Booking id"),
    wait_seconds: float = Query(0, ge=0, le=20, description="Long-poll window"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    """Fallback confirmation check for guests back from checkout.

    ``verification`` is "confirmed", "cancelled" or "verifying"; a booking
    still pending after the wait window reports "verifying".
    """
    try:
        booking = get_booking(ctx, booking_id)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail="Booking not found") from e

    if wait_seconds > 0:
        state = wait_for_confirmation(ctx.store, booking_id, timeout=wait_seconds)
        booking = get_booking(ctx, booking_id)
    else:
        state = verification_state(booking)

    return {"booking_id": booking.id, "status": booking.status.value, "verification": state.value}


@router.post("/bookings/{booking_id}/assign-user")
def claim_booking(
    body: AssignUserRequest,
    booking_id: str = Path(..., description="Booking id"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    """Attach the guest who signed in during checkout to their booking."""
    try:
        return assign_user(ctx, booking_id, body.user_id).to_dict()
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail="Booking not found") from e
    except BookingOwnershipError as e:
        raise HTTPException(status_code=409, detail="Booking already has an owner") from e


@router.get("/guests/{user_id}/bookings")
def guest_bookings(
    user_id: str = Path(..., description="Guest id"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    return {"bookings": [b.to_dict() for b in ctx.store.list_bookings_for_user(user_id)]}


@router.get("/guests/{user_id}/tier")
def guest_loyalty_tier(
    user_id: str = Path(..., description="Guest id"),
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    return guest_tier(ctx, user_id).to_dict()
