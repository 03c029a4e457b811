"""Tests for checkout initiation and webhook reconciliation."""

from unittest.mock import patch

import pytest

from cozynook.domain.bookings import BookingNotFoundError, cancel_booking
from cozynook.domain.models import BookingStatus, PaymentStatus
from cozynook.domain.payments import (
    BookingNotPendingError,
    ContactValidationError,
    GuestContact,
    InvalidTxRefError,
    PaymentsNotConfiguredError,
    ReconcileOutcome,
    UnsupportedCurrencyError,
    build_tx_ref,
    initiate_payment,
    reconcile_payment,
)
from cozynook.domain.pricing import EXCHANGE_RATE_KEY
from cozynook.infra.time import epoch_millis
from cozynook.paychangu.client import GatewayRejectedError
from cozynook.paychangu.webhook import parse_event

from .helpers import EXEC_ROOM, HOUSE, confirmed, d, pending, webhook_body

CONTACT = GuestContact(email="ada@example.com", first_name="Ada", last_name="Banda")


def _event(booking_id: str, status: str = "success", amount: int = 525000, ts: int = 1):
    return parse_event(webhook_body(build_tx_ref(booking_id, timestamp_ms=ts), status, amount))


class TestInitiatePayment:
    def test_creates_checkout_in_mwk(self, ctx, clock, gateway):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))

        session = initiate_payment(ctx, booking.id, contact=CONTACT)

        # 2 nights * 150 USD * 1750
        assert session.amount == 525000
        assert session.currency == "MWK"
        assert session.checkout_url == gateway.checkout_url
        assert session.tx_ref == f"nook_txn_{booking.id}_{epoch_millis(clock.now)}"

        sent = gateway.requests[0]
        assert sent.tx_ref == session.tx_ref
        assert sent.callback_url == ctx.callback_url
        assert sent.return_url == (
            f"https://app.example.test/?payment_verifying=true&booking_id={booking.id}"
        )
        assert sent.description == f"Booking ID: {booking.id}"

        log = ctx.store.get_payment_log(session.tx_ref)
        assert log.status is PaymentStatus.INITIATED
        assert log.amount == 525000

    def test_uses_fresh_exchange_rate(self, ctx, store):
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        store.set_config(EXCHANGE_RATE_KEY, "1800.25")
        # 150 * 1800.25 = 270037.5, rounded up
        assert initiate_payment(ctx, booking.id, contact=CONTACT).amount == 270038

    def test_usd_charged_unconverted(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        session = initiate_payment(ctx, booking.id, contact=CONTACT, currency="usd")
        assert session.amount == 150
        assert session.currency == "USD"

    @pytest.mark.parametrize(
        "contact",
        [
            GuestContact(email="", first_name="Ada", last_name="Banda"),
            GuestContact(email="not-an-email", first_name="Ada", last_name="Banda"),
            GuestContact(email="ada@example.com", first_name=" ", last_name="Banda"),
            GuestContact(email="ada@example.com", first_name="Ada", last_name=""),
        ],
    )
    def test_contact_validated_before_gateway(self, ctx, gateway, contact):
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        with pytest.raises(ContactValidationError):
            initiate_payment(ctx, booking.id, contact=contact)
        assert gateway.requests == []

    def test_unsupported_currency(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        with pytest.raises(UnsupportedCurrencyError):
            initiate_payment(ctx, booking.id, contact=CONTACT, currency="EUR")

    def test_unknown_booking(self, ctx):
        with pytest.raises(BookingNotFoundError):
            initiate_payment(ctx, "missing", contact=CONTACT)

    def test_confirmed_booking_not_payable(self, ctx, gateway):
        booking = confirmed(ctx, EXEC_ROOM, d(1), d(2))
        with pytest.raises(BookingNotPendingError):
            initiate_payment(ctx, booking.id, contact=CONTACT)
        assert gateway.requests == []

    def test_no_gateway_configured(self, ctx):
        ctx.gateway = None
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        with pytest.raises(PaymentsNotConfiguredError):
            initiate_payment(ctx, booking.id, contact=CONTACT)

    def test_gateway_error_propagates_without_log(self, ctx, gateway):
        gateway.error = GatewayRejectedError("Invalid email", 400)
        booking = pending(ctx, EXEC_ROOM, d(1), d(2))
        with pytest.raises(GatewayRejectedError):
            initiate_payment(ctx, booking.id, contact=CONTACT)
        assert ctx.store.list_payment_logs(booking.id) == []
        assert ctx.store.get_booking(booking.id).status is BookingStatus.PENDING


class TestReconcilePayment:
    def test_success_confirms_booking(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        event = _event(booking.id)

        result = reconcile_payment(ctx, event)

        assert result.outcome is ReconcileOutcome.CONFIRMED
        assert ctx.store.get_booking(booking.id).status is BookingStatus.CONFIRMED
        assert ctx.store.get_payment_log(event.tx_ref).status is PaymentStatus.SUCCESS

    def test_duplicate_delivery_is_noop(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        event = _event(booking.id)

        reconcile_payment(ctx, event)
        again = reconcile_payment(ctx, event)

        assert again.outcome is ReconcileOutcome.ALREADY_CONFIRMED
        assert len(ctx.store.list_payment_logs(booking.id)) == 1

    def test_success_keeps_initiated_log_created_at(self, ctx, clock):
        started = clock.now
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        session = initiate_payment(ctx, booking.id, contact=CONTACT)
        clock.advance(minutes=3)

        reconcile_payment(ctx, parse_event(webhook_body(session.tx_ref, amount=session.amount)))

        log = ctx.store.get_payment_log(session.tx_ref)
        assert log.status is PaymentStatus.SUCCESS
        assert log.created_at == started

    def test_amount_mismatch_logged(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        session = initiate_payment(ctx, booking.id, contact=CONTACT)

        with patch("cozynook.domain.payments.logger") as mock_logger:
            reconcile_payment(ctx, parse_event(webhook_body(session.tx_ref, amount=1)))

        messages = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert "webhook amount differs from initiated amount" in messages

    def test_failure_cancels_booking(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        event = _event(booking.id, status="failed")

        result = reconcile_payment(ctx, event)

        assert result.outcome is ReconcileOutcome.CANCELLED
        assert result.booking_status is BookingStatus.CANCELLED
        assert ctx.store.get_payment_log(event.tx_ref).status is PaymentStatus.FAILED

    def test_failure_replay(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        event = _event(booking.id, status="failed")
        reconcile_payment(ctx, event)
        assert reconcile_payment(ctx, event).outcome is ReconcileOutcome.ALREADY_CANCELLED

    def test_failure_after_confirmation_ignored(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        reconcile_payment(ctx, _event(booking.id, ts=1))

        result = reconcile_payment(ctx, _event(booking.id, status="failed", ts=2))

        assert result.outcome is ReconcileOutcome.IGNORED
        assert ctx.store.get_booking(booking.id).status is BookingStatus.CONFIRMED

    def test_double_pending_race_flags_refund(self, ctx):
        first = pending(ctx, HOUSE, d(10), d(12))
        second = pending(ctx, EXEC_ROOM, d(10), d(11))

        assert reconcile_payment(ctx, _event(first.id)).outcome is ReconcileOutcome.CONFIRMED

        loser_event = _event(second.id)
        with patch("cozynook.domain.payments.logger") as mock_logger:
            result = reconcile_payment(ctx, loser_event)

        assert result.outcome is ReconcileOutcome.REFUND_REQUIRED
        assert result.booking_status is BookingStatus.CANCELLED
        assert ctx.store.get_payment_log(loser_event.tx_ref).status is PaymentStatus.REFUND_REQUIRED
        mock_logger.error.assert_called_once()
        assert len(ctx.store.find_confirmed_overlapping(d(10), d(12))) == 1

    def test_refund_replay_not_logged_twice(self, ctx):
        first = pending(ctx, HOUSE, d(10), d(12))
        second = pending(ctx, HOUSE, d(10), d(12))
        reconcile_payment(ctx, _event(first.id))
        loser_event = _event(second.id)
        reconcile_payment(ctx, loser_event)

        with patch("cozynook.domain.payments.logger") as mock_logger:
            again = reconcile_payment(ctx, loser_event)

        assert again.outcome is ReconcileOutcome.REFUND_REQUIRED
        mock_logger.error.assert_not_called()

    def test_late_failure_keeps_refund_flag(self, ctx):
        first = pending(ctx, HOUSE, d(10), d(12))
        second = pending(ctx, HOUSE, d(10), d(12))
        reconcile_payment(ctx, _event(first.id))
        loser_event = _event(second.id)
        reconcile_payment(ctx, loser_event)

        result = reconcile_payment(ctx, _event(second.id, status="failed"))

        assert result.outcome is ReconcileOutcome.ALREADY_CANCELLED
        assert ctx.store.get_payment_log(loser_event.tx_ref).status is PaymentStatus.REFUND_REQUIRED

    def test_late_failure_keeps_success_log(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        event = _event(booking.id)
        reconcile_payment(ctx, event)

        result = reconcile_payment(ctx, _event(booking.id, status="failed"))

        assert result.outcome is ReconcileOutcome.IGNORED
        assert ctx.store.get_payment_log(event.tx_ref).status is PaymentStatus.SUCCESS

    def test_second_distinct_payment_flags_refund(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        first = _event(booking.id, ts=1)
        second = _event(booking.id, ts=2)
        reconcile_payment(ctx, first)

        with patch("cozynook.domain.payments.logger") as mock_logger:
            result = reconcile_payment(ctx, second)

        assert result.outcome is ReconcileOutcome.REFUND_REQUIRED
        assert result.booking_status is BookingStatus.CONFIRMED
        assert ctx.store.get_payment_log(first.tx_ref).status is PaymentStatus.SUCCESS
        assert ctx.store.get_payment_log(second.tx_ref).status is PaymentStatus.REFUND_REQUIRED
        mock_logger.error.assert_called_once()

    def test_second_distinct_payment_replay(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        first = _event(booking.id, ts=1)
        second = _event(booking.id, ts=2)
        reconcile_payment(ctx, first)
        reconcile_payment(ctx, second)

        with patch("cozynook.domain.payments.logger") as mock_logger:
            again = reconcile_payment(ctx, second)
            replay_first = reconcile_payment(ctx, first)

        assert again.outcome is ReconcileOutcome.REFUND_REQUIRED
        assert replay_first.outcome is ReconcileOutcome.ALREADY_CONFIRMED
        mock_logger.error.assert_not_called()

    def test_late_success_after_expiry_flags_refund(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        cancel_booking(ctx, booking.id, reason="pending_ttl_expired")
        event = _event(booking.id)

        result = reconcile_payment(ctx, event)

        assert result.outcome is ReconcileOutcome.REFUND_REQUIRED
        assert ctx.store.get_booking(booking.id).status is BookingStatus.CANCELLED
        assert ctx.store.get_payment_log(event.tx_ref).status is PaymentStatus.REFUND_REQUIRED

    def test_unrecognized_status_ignored(self, ctx):
        booking = pending(ctx, EXEC_ROOM, d(1), d(3))
        result = reconcile_payment(ctx, _event(booking.id, status="pending"))
        assert result.outcome is ReconcileOutcome.IGNORED
        assert ctx.store.get_booking(booking.id).status is BookingStatus.PENDING

    def test_unknown_booking(self, ctx):
        with pytest.raises(BookingNotFoundError):
            reconcile_payment(ctx, _event("ghost"))

    def test_unparseable_tx_ref(self, ctx):
        with pytest.raises(InvalidTxRefError):
            reconcile_payment(ctx, parse_event(webhook_body("TX-12345")))
