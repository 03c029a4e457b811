"""Payment reconciliation: checkout initiation and webhook-driven confirmation.

tx_ref format:  nook_txn_{booking_id}_{timestamp_ms}
Splitting on "_" yields the booking id at index 2, so callbacks map back to
a booking without a lookup table. Booking ids therefore never contain "_".

Reconciliation is idempotent: the payment log is keyed by tx_ref and every
booking transition is a no-op when replayed. A log that records captured
money (success, refund_required) is never downgraded by a later callback.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cozynook.domain.bookings import (
    BookingNotFoundError,
    CancelOutcome,
    ConfirmOutcome,
    InvalidTransitionError,
    cancel_booking,
    confirm_booking,
    get_booking,
)
from cozynook.domain.context import BookingContext
from cozynook.domain.models import (
    BookingStatus,
    PaymentLog,
    PaymentStatus,
    payment_status_after,
)
from cozynook.domain.pricing import CANONICAL_CURRENCY, HOME_CURRENCY, convert_amount
from cozynook.infra.time import epoch_millis
from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import safe_log_context
from cozynook.paychangu.client import CheckoutRequest
from cozynook.paychangu.webhook import PayChanguWebhookEvent

logger = get_logger(__name__)

TX_REF_PREFIX = "nook"
TX_REF_TAG = "txn"
TX_REF_DELIMITER = "_"
TX_REF_BOOKING_ID_INDEX = 2

SUPPORTED_CURRENCIES = (HOME_CURRENCY, CANONICAL_CURRENCY)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class InvalidTxRefError(ValueError):
    """tx_ref does not follow nook_txn_{booking_id}_{timestamp}."""


class ContactValidationError(ValueError):
    """Guest contact details are missing or malformed."""


class UnsupportedCurrencyError(ValueError):
    """Requested charge currency is not offered."""


class BookingNotPendingError(Exception):
    """Checkout requested for a booking that is no longer pending."""

    def __init__(self, booking_id: str, status: BookingStatus) -> None:
        self.booking_id = booking_id
        self.status = status
        super().__init__(f"Booking {booking_id} is {status.value}, not pending")


class PaymentsNotConfiguredError(RuntimeError):
    """No payment gateway client is configured."""


def build_tx_ref(booking_id: str, *, timestamp_ms: int) -> str:
    """Build the correlation token for a booking's payment attempt."""
    if not booking_id or TX_REF_DELIMITER in booking_id:
        raise ValueError(f"booking id cannot be embedded in tx_ref: {booking_id!r}")
    return TX_REF_DELIMITER.join(
        [TX_REF_PREFIX, TX_REF_TAG, booking_id, str(timestamp_ms)]
    )


def parse_booking_id(tx_ref: str) -> str:
    """Extract the booking id (field index 2) from a tx_ref."""
    parts = tx_ref.split(TX_REF_DELIMITER) if tx_ref else []
    if (
        len(parts) != 4
        or parts[0] != TX_REF_PREFIX
        or parts[1] != TX_REF_TAG
        or not parts[TX_REF_BOOKING_ID_INDEX]
        or not parts[3].isdigit()
    ):
        raise InvalidTxRefError(f"Unrecognized tx_ref: {tx_ref!r}")
    return parts[TX_REF_BOOKING_ID_INDEX]


@dataclass(frozen=True)
class GuestContact:
    email: str
    first_name: str
    last_name: str
    phone: str = ""

    def validate(self) -> None:
        if not self.email or not _EMAIL_RE.match(self.email.strip()):
            raise ContactValidationError("A valid email is required")
        if not self.first_name.strip() or not self.last_name.strip():
            raise ContactValidationError("First and last name are required")


@dataclass(frozen=True)
class CheckoutSession:
    booking_id: str
    tx_ref: str
    checkout_url: str
    amount: int
    currency: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "tx_ref": self.tx_ref,
            "checkout_url": self.checkout_url,
            "amount": self.amount,
            "currency": self.currency,
        }


def charge_amount(ctx: BookingContext, total_amount: int, currency: str) -> int:
    """Amount to charge in ``currency`` for a canonical total."""
    if currency == CANONICAL_CURRENCY:
        return total_amount
    return convert_amount(total_amount, ctx.rates.get_rate())


def initiate_payment(
    ctx: BookingContext,
    booking_id: str,
    *,
    contact: GuestContact,
    currency: str = HOME_CURRENCY,
    correlation_id: str | None = None,
) -> CheckoutSession:
    """Start a hosted checkout for a pending booking.

    Validation happens before any network call. The gateway's errors
    (GatewayUnreachableError, GatewayRejectedError, GatewayNoRedirectError)
    propagate unchanged.

    Raises:
        ContactValidationError: Missing/malformed contact details.
        UnsupportedCurrencyError: Currency not offered.
        BookingNotFoundError: Booking does not exist.
        BookingNotPendingError: Booking already confirmed or cancelled.
        PaymentsNotConfiguredError: No gateway client.
    """
    contact.validate()
    currency = currency.upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise UnsupportedCurrencyError(f"Unsupported currency: {currency}")

    booking = get_booking(ctx, booking_id)
    if booking.status is not BookingStatus.PENDING:
        raise BookingNotPendingError(booking.id, booking.status)
    if ctx.gateway is None:
        raise PaymentsNotConfiguredError("Payment gateway is not configured")

    amount = charge_amount(ctx, booking.total_amount, currency)
    tx_ref = build_tx_ref(booking.id, timestamp_ms=epoch_millis(ctx.clock()))
    return_url = f"{ctx.return_base_url}/?payment_verifying=true&booking_id={booking.id}"

    checkout_url = ctx.gateway.create_checkout(
        CheckoutRequest(
            amount=amount,
            currency=currency,
            email=contact.email.strip(),
            first_name=contact.first_name.strip(),
            last_name=contact.last_name.strip(),
            phone=contact.phone.strip(),
            tx_ref=tx_ref,
            callback_url=ctx.callback_url,
            return_url=return_url,
            description=f"Booking ID: {booking.id}",
        ),
        correlation_id=correlation_id,
    )

    ctx.store.upsert_payment_log(
        PaymentLog(
            booking_id=booking.id,
            tx_ref=tx_ref,
            amount=amount,
            currency=currency,
            status=PaymentStatus.INITIATED,
            created_at=ctx.clock(),
        )
    )

    return CheckoutSession(
        booking_id=booking.id,
        tx_ref=tx_ref,
        checkout_url=checkout_url,
        amount=amount,
        currency=currency,
    )


class ReconcileOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    # Payment captured but the booking could not be confirmed
    REFUND_REQUIRED = "refund_required"
    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    booking_id: str
    booking_status: BookingStatus


def _log_payment(
    ctx: BookingContext,
    event: PayChanguWebhookEvent,
    booking_id: str,
    status: PaymentStatus,
) -> None:
    existing = ctx.store.get_payment_log(event.tx_ref)

    if existing is not None and payment_status_after(existing.status, status) is not status:
        logger.warning(
            "payment log status kept, callback would downgrade it",
            extra={
                "extra_fields": {
                    "booking_id": booking_id,
                    "tx_ref": event.tx_ref,
                    "stored_status": existing.status.value,
                    "reported_status": status.value,
                }
            },
        )
        return

    amount = event.amount if event.amount is not None else (existing.amount if existing else 0)
    currency = event.currency or (existing.currency if existing else HOME_CURRENCY)

    if existing is not None and event.amount is not None and existing.amount != event.amount:
        logger.warning(
            "webhook amount differs from initiated amount",
            extra={
                "extra_fields": {
                    "booking_id": booking_id,
                    "initiated_amount": existing.amount,
                    "reported_amount": event.amount,
                }
            },
        )

    ctx.store.upsert_payment_log(
        PaymentLog(
            booking_id=booking_id,
            tx_ref=event.tx_ref,
            amount=amount,
            currency=currency,
            status=status,
            gateway_response=event.raw,
            created_at=existing.created_at if existing and existing.created_at else ctx.clock(),
        )
    )


def _flag_refund(
    ctx: BookingContext,
    event: PayChanguWebhookEvent,
    booking_id: str,
    reason: str,
    correlation_id: str | None,
) -> None:
    existing = ctx.store.get_payment_log(event.tx_ref)
    _log_payment(ctx, event, booking_id, PaymentStatus.REFUND_REQUIRED)
    if existing is not None and existing.status is PaymentStatus.REFUND_REQUIRED:
        # Redelivery of an already flagged payment
        return
    logger.error(
        "payment captured without reservation, manual refund required",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                booking_id=booking_id,
                tx_ref=event.tx_ref,
                amount=event.amount,
                reason=reason,
            )
        },
    )


def _paid_by_other_tx(ctx: BookingContext, booking_id: str, tx_ref: str) -> bool:
    return any(
        log.tx_ref != tx_ref and log.status is PaymentStatus.SUCCESS
        for log in ctx.store.list_payment_logs(booking_id)
    )


def _reconcile_success(
    ctx: BookingContext,
    event: PayChanguWebhookEvent,
    booking_id: str,
    correlation_id: str | None,
) -> ReconcileResult:
    try:
        result = confirm_booking(ctx, booking_id)
    except InvalidTransitionError as e:
        # Cancelled (expired or failed) before the money arrived
        _flag_refund(ctx, event, booking_id, "booking_already_cancelled", correlation_id)
        return ReconcileResult(ReconcileOutcome.REFUND_REQUIRED, booking_id, e.current)

    if result.outcome is ConfirmOutcome.CONFLICT_CANCELLED:
        _flag_refund(ctx, event, booking_id, "slot_taken_at_confirmation", correlation_id)
        return ReconcileResult(ReconcileOutcome.REFUND_REQUIRED, booking_id, result.booking.status)

    if result.outcome is ConfirmOutcome.ALREADY_CONFIRMED and _paid_by_other_tx(
        ctx, booking_id, event.tx_ref
    ):
        # Second checkout for the same stay; only a replay of one tx_ref is a no-op
        _flag_refund(ctx, event, booking_id, "duplicate_payment", correlation_id)
        return ReconcileResult(ReconcileOutcome.REFUND_REQUIRED, booking_id, result.booking.status)

    _log_payment(ctx, event, booking_id, PaymentStatus.SUCCESS)
    outcome = (
        ReconcileOutcome.CONFIRMED
        if result.outcome is ConfirmOutcome.CONFIRMED
        else ReconcileOutcome.ALREADY_CONFIRMED
    )
    return ReconcileResult(outcome, booking_id, result.booking.status)


def _reconcile_failure(
    ctx: BookingContext,
    event: PayChanguWebhookEvent,
    booking_id: str,
) -> ReconcileResult:
    booking = get_booking(ctx, booking_id)
    if booking.status is BookingStatus.CONFIRMED:
        # A failed retry after a successful charge must not undo the stay
        logger.warning(
            "failed payment reported for confirmed booking, ignoring",
            extra={"extra_fields": {"booking_id": booking_id, "tx_ref": event.tx_ref}},
        )
        return ReconcileResult(ReconcileOutcome.IGNORED, booking_id, booking.status)

    result = cancel_booking(ctx, booking_id, reason="payment_failed")
    _log_payment(ctx, event, booking_id, PaymentStatus.FAILED)
    outcome = (
        ReconcileOutcome.CANCELLED
        if result.outcome is CancelOutcome.CANCELLED
        else ReconcileOutcome.ALREADY_CANCELLED
    )
    return ReconcileResult(outcome, booking_id, result.booking.status)


def reconcile_payment(
    ctx: BookingContext,
    event: PayChanguWebhookEvent,
    *,
    correlation_id: str | None = None,
) -> ReconcileResult:
    """Apply a verified gateway callback to its booking.

    Args:
        ctx: Booking context.
        event: Signature-checked webhook event.
        correlation_id: Optional correlation ID for tracing.

    Returns:
        ReconcileResult describing what happened.

    Raises:
        InvalidTxRefError: tx_ref does not embed a booking id.
        BookingNotFoundError: Booking id is unknown.
    """
    booking_id = parse_booking_id(event.tx_ref)
    booking = ctx.store.get_booking(booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking not found: {booking_id}")

    if event.outcome == "success":
        result = _reconcile_success(ctx, event, booking_id, correlation_id)
    elif event.outcome == "failed":
        result = _reconcile_failure(ctx, event, booking_id)
    else:
        result = ReconcileResult(ReconcileOutcome.IGNORED, booking_id, booking.status)

    logger.info(
        "payment reconciled",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                booking_id=booking_id,
                outcome=result.outcome.value,
                booking_status=result.booking_status.value,
                signed=event.signed,
            )
        },
    )
    return result
