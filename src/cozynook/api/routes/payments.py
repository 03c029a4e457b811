"""Checkout initiation for pending bookings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cozynook.api.deps import get_booking_context
from cozynook.domain.bookings import BookingNotFoundError
from cozynook.domain.context import BookingContext
from cozynook.domain.payments import (
    BookingNotPendingError,
    ContactValidationError,
    GuestContact,
    PaymentsNotConfiguredError,
    UnsupportedCurrencyError,
    initiate_payment,
)
from cozynook.observability.correlation import get_correlation_id
from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import safe_log_context
from cozynook.paychangu.client import (
    GatewayNoRedirectError,
    GatewayRejectedError,
    GatewayUnreachableError,
)

router = APIRouter(prefix="/payments", tags=["payments"])

logger = get_logger(__name__)


class CheckoutRequestBody(BaseModel):
    booking_id: str
    email: str
    first_name: str
    last_name: str
    phone: str = ""
    currency: str = "MWK"


def _gateway_failure(code: str, message: str, booking_id: str) -> HTTPException:
    logger.warning(
        "checkout initiation failed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                booking_id=booking_id,
                error=code,
            )
        },
    )
    return HTTPException(status_code=502, detail={"error": code, "message": message})


@router.post("/checkout")
def checkout(
    body: CheckoutRequestBody,
    ctx: BookingContext = Depends(get_booking_context),
) -> dict:
    """Create a hosted checkout; the client redirects to ``checkout_url``.

    Gateway failures return 502 with error code:
    - gateway_unreachable: retry later
    - gateway_rejected: details were refused, fix and retry
    - gateway_no_redirect: accepted but no checkout URL, contact support
    """
    contact = GuestContact(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    try:
        session = initiate_payment(
            ctx,
            body.booking_id,
            contact=contact,
            currency=body.currency,
            correlation_id=get_correlation_id(),
        )
    except (ContactValidationError, UnsupportedCurrencyError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except BookingNotFoundError as e:
        raise HTTPException(status_code=404, detail="Booking not found") from e
    except BookingNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PaymentsNotConfiguredError as e:
        raise HTTPException(status_code=503, detail="Payments are not available") from e
    except GatewayUnreachableError as e:
        raise _gateway_failure("gateway_unreachable", str(e), body.booking_id) from e
    except GatewayRejectedError as e:
        raise _gateway_failure("gateway_rejected", str(e), body.booking_id) from e
    except GatewayNoRedirectError as e:
        raise _gateway_failure("gateway_no_redirect", str(e), body.booking_id) from e

    return session.to_dict()
