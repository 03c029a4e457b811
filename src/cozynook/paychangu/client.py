"""Thin wrapper around the PayChangu hosted checkout API.

Purpose:
- Keep HTTP details out of domain code.
- Normalize the gateway's loosely shaped responses into CheckoutResponse.
- Map failures to distinct errors: unreachable, rejected, no usable redirect.
- Never log contact details or full payloads (status class + redacted snippet only).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import requests

from cozynook.observability.logging import get_logger
from cozynook.observability.redaction import body_snippet, safe_log_context

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.paychangu.com/payment"


class GatewayError(Exception):
    """Base class for checkout initiation failures."""


class GatewayUnreachableError(GatewayError):
    """Network failure or timeout: the gateway never answered."""


class GatewayRejectedError(GatewayError):
    """The gateway answered and refused the request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GatewayNoRedirectError(GatewayError):
    """The gateway accepted the request but returned no checkout URL."""


class CheckoutKind(str, Enum):
    CREATED = "created"
    REJECTED = "rejected"
    NO_REDIRECT = "no_redirect"


@dataclass(frozen=True)
class CheckoutResponse:
    kind: CheckoutKind
    checkout_url: str | None = None
    message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutRequest:
    amount: int
    currency: str
    email: str
    first_name: str
    last_name: str
    tx_ref: str
    callback_url: str
    return_url: str
    phone: str = ""
    title: str = "The Cozy Nook Stay"
    description: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "email": self.email,
            "phone": self.phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "callback_url": self.callback_url,
            "return_url": self.return_url,
            "tx_ref": self.tx_ref,
            "customization": {
                "title": self.title,
                "description": self.description,
            },
        }


def _message_of(data: dict[str, Any]) -> str | None:
    message = data.get("message")
    if message is None:
        return None
    return message if isinstance(message, str) else str(message)


def normalize_checkout_response(status_code: int, data: Any) -> CheckoutResponse:
    """Classify a decoded gateway response.

    The checkout URL may arrive at the top level or nested under ``data``.
    """
    if not isinstance(data, dict):
        if status_code >= 400:
            return CheckoutResponse(CheckoutKind.REJECTED, message="Payment gateway error")
        return CheckoutResponse(
            CheckoutKind.NO_REDIRECT, message="Invalid response from payment gateway"
        )

    nested = data.get("data") if isinstance(data.get("data"), dict) else {}
    checkout_url = data.get("checkout_url") or nested.get("checkout_url")

    if status_code >= 400 or str(data.get("status", "")).lower() in ("failed", "error"):
        return CheckoutResponse(
            CheckoutKind.REJECTED,
            message=_message_of(data) or "Payment gateway error",
            raw=data,
        )

    if isinstance(checkout_url, str) and checkout_url:
        return CheckoutResponse(CheckoutKind.CREATED, checkout_url=checkout_url, raw=data)

    return CheckoutResponse(
        CheckoutKind.NO_REDIRECT,
        message=_message_of(data) or "Payment gateway returned no checkout URL",
        raw=data,
    )


class PayChanguClient:
    """Client for creating hosted checkout sessions.

    Usage:
        client = PayChanguClient()  # reads PAYCHANGU_SECRET_KEY from env
        url = client.create_checkout(CheckoutRequest(...))
    """

    def __init__(
        self,
        secret_key: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Raises:
            RuntimeError: If no secret key is provided or found in environment.
        """
        self._secret_key = secret_key or os.environ.get("PAYCHANGU_SECRET_KEY")
        if not self._secret_key:
            raise RuntimeError(
                "PayChangu secret key not provided. "
                "Set PAYCHANGU_SECRET_KEY or pass secret_key parameter."
            )
        self._api_url = api_url
        self._timeout = timeout
        self._session = session or requests.Session()

    def create_checkout(
        self,
        request: CheckoutRequest,
        *,
        correlation_id: str | None = None,
    ) -> str:
        """Create a hosted checkout and return its URL.

        Raises:
            GatewayUnreachableError: Connection failure or timeout.
            GatewayRejectedError: Gateway refused the request.
            GatewayNoRedirectError: Gateway accepted but gave no checkout URL.
        """
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                self._api_url,
                json=request.to_payload(),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "payment gateway unreachable",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        tx_ref=request.tx_ref,
                        error_type=type(e).__name__,
                    )
                },
            )
            raise GatewayUnreachableError("Could not reach payment gateway") from e

        try:
            data: Any = response.json()
        except ValueError:
            data = None

        result = normalize_checkout_response(response.status_code, data)

        if result.kind is CheckoutKind.CREATED:
            logger.info(
                "payment checkout created",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        tx_ref=request.tx_ref,
                        amount=request.amount,
                        currency=request.currency,
                    )
                },
            )
            return result.checkout_url  # type: ignore[return-value]

        log_fields = safe_log_context(
            correlationId=correlation_id,
            tx_ref=request.tx_ref,
            status_class=f"{response.status_code // 100}xx",
            outcome=result.kind.value,
        )
        log_fields["body_snippet"] = body_snippet(response.text)
        logger.error("payment checkout failed", extra={"extra_fields": log_fields})

        if result.kind is CheckoutKind.REJECTED:
            raise GatewayRejectedError(result.message or "Payment gateway error", response.status_code)
        raise GatewayNoRedirectError(result.message or "Payment gateway returned no checkout URL")
