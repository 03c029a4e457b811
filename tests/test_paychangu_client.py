"""Tests for the PayChangu checkout client (no network)."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from cozynook.paychangu.client import (
    CheckoutKind,
    CheckoutRequest,
    GatewayNoRedirectError,
    GatewayRejectedError,
    GatewayUnreachableError,
    PayChanguClient,
    normalize_checkout_response,
)

REQUEST = CheckoutRequest(
    amount=525000,
    currency="MWK",
    email="ada@example.com",
    first_name="Ada",
    last_name="Banda",
    phone="+265 999 123 456",
    tx_ref="nook_txn_abc_1",
    callback_url="https://api.example.test/webhooks/paychangu",
    return_url="https://app.example.test/?payment_verifying=true&booking_id=abc",
    description="Booking ID: abc",
)


def _response(status_code: int, json_data=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_data
    return response


def _client(response=None, error=None) -> tuple[PayChanguClient, MagicMock]:
    session = MagicMock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = response
    return PayChanguClient("sk_test", api_url="https://gw.test/payment", session=session), session


class TestNormalizeCheckoutResponse:
    def test_top_level_url(self):
        result = normalize_checkout_response(200, {"checkout_url": "https://pay/x"})
        assert result.kind is CheckoutKind.CREATED
        assert result.checkout_url == "https://pay/x"

    def test_nested_url(self):
        result = normalize_checkout_response(
            201, {"status": "success", "data": {"checkout_url": "https://pay/y"}}
        )
        assert result.kind is CheckoutKind.CREATED
        assert result.checkout_url == "https://pay/y"

    def test_http_error_is_rejection(self):
        result = normalize_checkout_response(400, {"message": "Invalid email"})
        assert result.kind is CheckoutKind.REJECTED
        assert result.message == "Invalid email"

    def test_failed_status_is_rejection(self):
        result = normalize_checkout_response(200, {"status": "failed", "message": {"email": ["bad"]}})
        assert result.kind is CheckoutKind.REJECTED
        assert "email" in result.message

    def test_success_without_url(self):
        result = normalize_checkout_response(200, {"status": "success", "data": {}})
        assert result.kind is CheckoutKind.NO_REDIRECT

    def test_non_json_success(self):
        assert normalize_checkout_response(200, None).kind is CheckoutKind.NO_REDIRECT

    def test_non_json_error(self):
        assert normalize_checkout_response(502, None).kind is CheckoutKind.REJECTED


class TestCreateCheckout:
    def test_returns_checkout_url(self):
        client, session = _client(_response(200, {"data": {"checkout_url": "https://pay/z"}}))

        assert client.create_checkout(REQUEST) == "https://pay/z"

        _, kwargs = session.post.call_args
        assert session.post.call_args.args[0] == "https://gw.test/payment"
        assert kwargs["headers"]["Authorization"] == "Bearer sk_test"
        assert kwargs["json"]["tx_ref"] == "nook_txn_abc_1"
        assert kwargs["json"]["customization"]["description"] == "Booking ID: abc"
        assert kwargs["timeout"] == 15

    def test_network_failure_is_unreachable(self):
        client, _ = _client(error=requests.ConnectionError("refused"))
        with pytest.raises(GatewayUnreachableError):
            client.create_checkout(REQUEST)

    def test_timeout_is_unreachable(self):
        client, _ = _client(error=requests.Timeout("slow"))
        with pytest.raises(GatewayUnreachableError):
            client.create_checkout(REQUEST)

    def test_rejection_carries_status(self):
        client, _ = _client(_response(422, {"message": "Invalid currency"}, text="{}"))
        with pytest.raises(GatewayRejectedError) as exc_info:
            client.create_checkout(REQUEST)
        assert exc_info.value.status_code == 422
        assert "Invalid currency" in str(exc_info.value)

    def test_missing_redirect(self):
        client, _ = _client(_response(200, {"status": "success"}, text="{}"))
        with pytest.raises(GatewayNoRedirectError):
            client.create_checkout(REQUEST)

    def test_failure_log_is_redacted_snippet(self):
        body = '{"message": "bad email ada@example.com"}' + "x" * 500
        client, _ = _client(_response(400, {"message": "bad"}, text=body))

        with patch("cozynook.paychangu.client.logger") as mock_logger:
            with pytest.raises(GatewayRejectedError):
                client.create_checkout(REQUEST)

        fields = mock_logger.error.call_args.kwargs["extra"]["extra_fields"]
        assert fields["status_class"] == "4xx"
        assert "ada@example.com" not in fields["body_snippet"]
        assert len(fields["body_snippet"]) <= 200


class TestClientConfig:
    def test_missing_secret_key(self, monkeypatch):
        monkeypatch.delenv("PAYCHANGU_SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError):
            PayChanguClient()

    def test_secret_key_from_env(self, monkeypatch):
        monkeypatch.setenv("PAYCHANGU_SECRET_KEY", "sk_env")
        PayChanguClient(session=MagicMock())
