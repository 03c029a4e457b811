"""PayChangu webhook signature validation and payload parsing.

Purpose:
- Validate the HMAC-SHA256 signature (hex) of the raw body.
- Extract the minimal data needed for reconciliation.
- Never log payload or signature.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Literal

from cozynook.observability.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADERS = ("X-Webhook-Signature", "Paychangu-Signature")

WebhookOutcome = Literal["success", "failed", "ignored"]


class InvalidSignatureError(Exception):
    """Webhook signature validation failed."""


class MissingSignatureError(InvalidSignatureError):
    """Webhook carried no signature header."""


class InvalidPayloadError(Exception):
    """Payload is not JSON or lacks required fields."""


@dataclass(frozen=True)
class PayChanguWebhookEvent:
    outcome: WebhookOutcome
    tx_ref: str
    amount: int | None
    currency: str | None
    raw: dict[str, Any]
    signed: bool = True


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> None:
    """Raise unless ``signature`` is the HMAC-SHA256 of ``body``.

    Accepts an optional ``sha256=`` prefix and any hex case.
    """
    if not signature:
        raise MissingSignatureError("Missing signature")

    candidate = signature.strip().lower()
    if candidate.startswith("sha256="):
        candidate = candidate[len("sha256="):]

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(candidate, expected):
        raise InvalidSignatureError("Invalid signature")


def _as_amount(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_event(body: bytes, *, signed: bool = True) -> PayChanguWebhookEvent:
    """Decode a webhook body into a PayChanguWebhookEvent.

    Success is ``status == "success"`` or ``event == "payment.success"``;
    failure is ``status == "failed"``. tx_ref/amount/currency may sit at the
    top level or under ``data``.

    Raises:
        InvalidPayloadError: Body is not a JSON object or has no tx_ref.
    """
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidPayloadError("Body is not valid JSON") from e

    if not isinstance(payload, dict):
        raise InvalidPayloadError("Body is not a JSON object")

    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    tx_ref = payload.get("tx_ref") or data.get("tx_ref")
    if not isinstance(tx_ref, str) or not tx_ref:
        raise InvalidPayloadError("Missing tx_ref")

    status = str(payload.get("status") or data.get("status") or "").lower()
    event_name = str(payload.get("event") or "").lower()

    outcome: WebhookOutcome
    if status == "success" or event_name == "payment.success":
        outcome = "success"
    elif status == "failed" or event_name == "payment.failed":
        outcome = "failed"
    else:
        outcome = "ignored"

    currency = payload.get("currency") or data.get("currency")

    return PayChanguWebhookEvent(
        outcome=outcome,
        tx_ref=tx_ref,
        amount=_as_amount(payload.get("amount", data.get("amount"))),
        currency=str(currency) if currency else None,
        raw=payload,
        signed=signed,
    )


def verify_and_extract(
    body: bytes,
    signature: str | None,
    secret: str,
    *,
    allow_unsigned: bool = False,
) -> PayChanguWebhookEvent:
    """Validate the signature (when present or required) and parse the event.

    Raises:
        MissingSignatureError: No signature and unsigned delivery not allowed.
        InvalidSignatureError: Signature present but wrong.
        InvalidPayloadError: Body cannot be parsed.
    """
    if not signature and allow_unsigned:
        logger.warning("accepting unsigned paychangu webhook (degraded mode)")
        return parse_event(body, signed=False)

    try:
        verify_signature(body, signature, secret)
    except InvalidSignatureError:
        # Do NOT log signature or payload
        logger.warning("paychangu webhook signature verification failed")
        raise

    return parse_event(body)
