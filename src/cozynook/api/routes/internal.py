"""Internal configuration routes (worker role, task auth)."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from cozynook.api.deps import get_booking_context
from cozynook.api.task_auth import verify_task_auth
from cozynook.domain.context import BookingContext

router = APIRouter(prefix="/internal", tags=["internal"])


class ExchangeRateBody(BaseModel):
    rate: Decimal = Field(..., gt=0)


@router.get("/exchange-rate")
def read_exchange_rate(
    request: Request,
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    if not verify_task_auth(request):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"rate": str(ctx.rates.get_rate()), "fallback": str(ctx.rates.fallback)}


@router.put("/exchange-rate")
def update_exchange_rate(
    body: ExchangeRateBody,
    request: Request,
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    """Set the MWK-per-USD rate used for new checkouts."""
    if not verify_task_auth(request):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"rate": str(ctx.rates.set_rate(body.rate))}
