"""Liveness endpoints.

/health is mounted for every role; /tasks/health and /internal/health only
on the worker so the scheduler can check the role it targets.
"""

from fastapi import APIRouter, Depends

from cozynook.api.deps import get_booking_context
from cozynook.domain.context import BookingContext

public_router = APIRouter(tags=["health"])
worker_router = APIRouter(tags=["health"])


def _webhook_mode(ctx: BookingContext) -> str:
    if ctx.webhook_secret:
        return "signed"
    return "unsigned" if ctx.allow_unsigned_webhooks else "unconfigured"


@public_router.get("/health")
def health(ctx: BookingContext = Depends(get_booking_context)) -> dict:
    """Liveness plus the payment features this instance can serve."""
    return {
        "status": "ok",
        "checkout": "enabled" if ctx.gateway is not None else "disabled",
        "webhooks": _webhook_mode(ctx),
    }


@worker_router.get("/tasks/health")
def tasks_health(ctx: BookingContext = Depends(get_booking_context)) -> dict:
    return {"status": "ok", "subsystem": "tasks", "pending_ttl_minutes": ctx.pending_ttl_minutes}


@worker_router.get("/internal/health")
def internal_health() -> dict:
    return {"status": "ok", "subsystem": "internal"}
