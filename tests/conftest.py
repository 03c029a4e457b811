"""Shared pytest fixtures for booking core tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cozynook.api.factory import create_app  # noqa: E402
from cozynook.domain.context import BookingContext  # noqa: E402
from cozynook.domain.pricing import ExchangeRateSource  # noqa: E402
from cozynook.infra.memory_store import InMemoryBookingStore  # noqa: E402

from .helpers import WEBHOOK_SECRET, FakeClock, FakeGateway  # noqa: E402


@pytest.fixture
def store():
    """Fresh in-memory store seeded with the house and its four rooms."""
    return InMemoryBookingStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ctx(store, clock, gateway):
    """Booking context wired to in-memory collaborators."""
    return BookingContext(
        store=store,
        rates=ExchangeRateSource(store, fallback="1750"),
        gateway=gateway,
        webhook_secret=WEBHOOK_SECRET,
        callback_url="https://api.example.test/webhooks/paychangu",
        return_base_url="https://app.example.test",
        clock=clock,
    )


@pytest.fixture
def client(ctx):
    """Public-role app bound to the test context."""
    return TestClient(create_app(role="public", context=ctx))


@pytest.fixture
def worker_client(ctx):
    """Worker-role app bound to the test context (no auth mock)."""
    return TestClient(create_app(role="worker", context=ctx))
