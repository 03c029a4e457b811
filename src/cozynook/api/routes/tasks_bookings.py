"""Worker routes for booking maintenance tasks."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from cozynook.api.deps import get_booking_context
from cozynook.api.task_auth import verify_task_auth
from cozynook.domain.context import BookingContext
from cozynook.domain.expire_pending import expire_stale_pending
from cozynook.observability.correlation import get_correlation_id
from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import safe_log_context

router = APIRouter(prefix="/tasks/bookings", tags=["tasks"])

logger = get_logger(__name__)


@router.post("/expire-pending")
async def handle_expire_pending(
    request: Request,
    ctx: BookingContext = Depends(get_booking_context),
) -> JSONResponse:
    """Cancel pending bookings older than the TTL.

    Optional payload:
    - ttl_minutes: override PENDING_TTL_MINUTES (positive int)
    """
    correlation_id = get_correlation_id()

    if not verify_task_auth(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")

    payload: dict[str, Any] = {}
    body = await request.body()
    if body:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={"ok": False, "error": "invalid json"})

    ttl = payload.get("ttl_minutes")
    if ttl is not None and (not isinstance(ttl, int) or isinstance(ttl, bool) or ttl <= 0):
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": "ttl_minutes must be a positive integer"},
        )

    result = expire_stale_pending(ctx, ttl_minutes=ttl)
    return JSONResponse(status_code=200, content={"ok": True, **result})
