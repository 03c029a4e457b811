"""Assemble a BookingContext from Settings."""

from __future__ import annotations

from cozynook.domain.context import BookingContext
from cozynook.domain.models import BookingStore
from cozynook.domain.pricing import ExchangeRateSource
from cozynook.infra.settings import Settings
from cozynook.observability.logging import get_logger

logger = get_logger(__name__)


def build_store(settings: Settings) -> BookingStore:
    if settings.store_backend == "memory":
        from cozynook.infra.memory_store import InMemoryBookingStore

        logger.warning("using in-memory booking store (data is not persisted)")
        return InMemoryBookingStore()

    from cozynook.infra.postgres_store import PostgresBookingStore

    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is required for STORE_BACKEND=postgres")
    return PostgresBookingStore(settings.database_url)


def build_context(settings: Settings | None = None) -> BookingContext:
    """Build the service context. Payments stay disabled without a gateway key."""
    settings = settings or Settings.from_env()
    store = build_store(settings)

    gateway = None
    if settings.paychangu_secret_key:
        from cozynook.paychangu.client import PayChanguClient

        gateway = PayChanguClient(
            settings.paychangu_secret_key,
            api_url=settings.paychangu_api_url,
            timeout=settings.gateway_timeout_seconds,
        )
    else:
        logger.warning("PAYCHANGU_SECRET_KEY not set, checkout is disabled")

    if settings.allow_unsigned_webhooks:
        logger.warning("WEBHOOK_ALLOW_UNSIGNED enabled, unsigned callbacks will be accepted")

    return BookingContext(
        store=store,
        rates=ExchangeRateSource(store, fallback=settings.default_exchange_rate),
        gateway=gateway,
        pending_ttl_minutes=settings.pending_ttl_minutes,
        webhook_secret=settings.webhook_secret,
        allow_unsigned_webhooks=settings.allow_unsigned_webhooks,
        callback_url=settings.webhook_callback_url or f"{settings.public_base_url}/webhooks/paychangu",
        return_base_url=settings.public_base_url,
    )
