"""PayChangu webhook route - public endpoint for payment callbacks.

Security rules:
- Verify the HMAC signature on every request (unsigned only in degraded mode).
- Never log payload or signature header.
- Return 5xx on unexpected failures so the gateway retries.
- Replays of an already applied callback return 200.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from cozynook.api.deps import get_booking_context
from cozynook.domain.bookings import BookingNotFoundError
from cozynook.domain.context import BookingContext
from cozynook.domain.payments import InvalidTxRefError, reconcile_payment
from cozynook.observability.correlation import get_correlation_id
from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import safe_log_context
from cozynook.paychangu.webhook import (
    SIGNATURE_HEADERS,
    InvalidPayloadError,
    InvalidSignatureError,
    MissingSignatureError,
    verify_and_extract,
)

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


def _signature_from(request: Request) -> str | None:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


@router.post("/webhooks/paychangu")
async def paychangu_webhook(
    request: Request,
    ctx: BookingContext = Depends(get_booking_context),
) -> Response:
    """Receive PayChangu payment callbacks.

    Returns:
        200 when applied, replayed or ignored.
        400 if the body or tx_ref is malformed.
        401 if the signature is missing or invalid.
        404 if the booking is unknown.
        500 on configuration or processing errors.
    """
    correlation_id = get_correlation_id()
    payload_bytes = await request.body()
    signature = _signature_from(request)

    unsigned_ok = ctx.allow_unsigned_webhooks and not signature
    if not ctx.webhook_secret and not unsigned_ok:
        logger.error(
            "webhook secret not configured",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content="server configuration error")

    try:
        event = verify_and_extract(
            payload_bytes,
            signature,
            ctx.webhook_secret or "",
            allow_unsigned=ctx.allow_unsigned_webhooks,
        )
    except MissingSignatureError:
        logger.warning(
            "paychangu webhook without signature rejected",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=401, content="missing signature")
    except InvalidSignatureError:
        logger.warning(
            "paychangu signature validation failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=401, content="invalid signature")
    except InvalidPayloadError:
        logger.warning(
            "paychangu payload invalid",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=400, content="invalid payload")

    try:
        result = reconcile_payment(ctx, event, correlation_id=correlation_id)
    except InvalidTxRefError:
        logger.warning(
            "paychangu webhook tx_ref unparseable",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=400, content="invalid tx_ref")
    except BookingNotFoundError:
        logger.warning(
            "paychangu webhook for unknown booking",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=404, content="unknown booking")
    except Exception:
        logger.exception(
            "paychangu webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content="processing failed")

    return JSONResponse(
        status_code=200,
        content={
            "ok": True,
            "outcome": result.outcome.value,
            "booking_id": result.booking_id,
            "status": result.booking_status.value,
        },
    )
