"""Service configuration loaded from environment variables.

All knobs of the booking core live here so collaborators receive explicit
values instead of reading os.environ at call time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

StoreBackend = Literal["postgres", "memory"]

DEFAULT_PAYCHANGU_API_URL = "https://api.paychangu.com/payment"
DEFAULT_PUBLIC_BASE_URL = "https://thecozynook.vercel.app"
DEFAULT_EXCHANGE_RATE = "1750"
DEFAULT_PENDING_TTL_MINUTES = 30
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 15


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        store_backend: "postgres" (production) or "memory" (dev/tests).
        database_url: Postgres DSN, required for the postgres backend.
        paychangu_secret_key: Bearer key for the gateway API.
        paychangu_api_url: Hosted checkout endpoint.
        webhook_secret: Shared secret for webhook HMAC signatures.
        allow_unsigned_webhooks: Degraded mode: accept unsigned callbacks
            (logged). Never enable in production.
        public_base_url: Origin the guest is returned to after checkout.
        webhook_callback_url: Public URL of POST /webhooks/paychangu.
        default_exchange_rate: Fallback MWK per USD.
        pending_ttl_minutes: Age after which pending bookings are reaped.
        gateway_timeout_seconds: HTTP timeout for gateway calls.
    """

    store_backend: StoreBackend = "postgres"
    database_url: str | None = None
    paychangu_secret_key: str | None = None
    paychangu_api_url: str = DEFAULT_PAYCHANGU_API_URL
    webhook_secret: str | None = None
    allow_unsigned_webhooks: bool = False
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    webhook_callback_url: str | None = None
    default_exchange_rate: str = DEFAULT_EXCHANGE_RATE
    pending_ttl_minutes: int = DEFAULT_PENDING_TTL_MINUTES
    gateway_timeout_seconds: int = DEFAULT_GATEWAY_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables."""
        backend = os.environ.get("STORE_BACKEND", "postgres").strip().lower()
        if backend not in ("postgres", "memory"):
            raise ValueError(f"Unknown STORE_BACKEND: {backend}")

        public_base_url = os.environ.get("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL).rstrip("/")

        return cls(
            store_backend=backend,  # type: ignore[arg-type]
            database_url=os.environ.get("DATABASE_URL") or None,
            paychangu_secret_key=os.environ.get("PAYCHANGU_SECRET_KEY") or None,
            paychangu_api_url=os.environ.get("PAYCHANGU_API_URL", DEFAULT_PAYCHANGU_API_URL),
            webhook_secret=os.environ.get("PAYCHANGU_WEBHOOK_SECRET") or None,
            allow_unsigned_webhooks=_env_bool("WEBHOOK_ALLOW_UNSIGNED"),
            public_base_url=public_base_url,
            webhook_callback_url=os.environ.get("WEBHOOK_CALLBACK_URL")
            or f"{public_base_url}/webhooks/paychangu",
            default_exchange_rate=os.environ.get("DEFAULT_EXCHANGE_RATE", DEFAULT_EXCHANGE_RATE),
            pending_ttl_minutes=_env_int("PENDING_TTL_MINUTES", DEFAULT_PENDING_TTL_MINUTES),
            gateway_timeout_seconds=_env_int(
                "GATEWAY_TIMEOUT_SECONDS", DEFAULT_GATEWAY_TIMEOUT_SECONDS
            ),
        )
