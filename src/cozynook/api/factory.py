"""FastAPI application factory with role-based route mounting.

Roles:
    public: guest-facing booking/checkout routes and the gateway webhook.
    worker: everything public mounts plus scheduler-triggered maintenance.
"""

import os
from typing import Literal

from fastapi import FastAPI, Request, Response

from cozynook.domain.context import BookingContext
from cozynook.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    correlation_scope,
)

from .routes import (
    availability,
    bookings,
    health,
    internal,
    payments,
    tasks_bookings,
    webhooks_paychangu,
)

AppRole = Literal["public", "worker"]

_PUBLIC_ROUTERS = (
    health.public_router,
    availability.router,
    bookings.router,
    payments.router,
    webhooks_paychangu.router,
)
_WORKER_ROUTERS = (
    health.worker_router,
    tasks_bookings.router,
    internal.router,
)


def create_app(
    role: AppRole | None = None,
    context: BookingContext | None = None,
) -> FastAPI:
    """Create the booking service app.

    Args:
        role: Explicit role override. If None, reads APP_ROLE (default "public").
        context: Booking context. If None, built from environment variables.

    Returns:
        Configured FastAPI application.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    if context is None:
        from cozynook.infra.bootstrap import build_context

        context = build_context()

    app = FastAPI(title="Cozy Nook Booking Core", docs_url=None, redoc_url=None)
    app.state.booking_ctx = context

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        with correlation_scope(cid):
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response

    routers = _PUBLIC_ROUTERS + (_WORKER_ROUTERS if role == "worker" else ())
    for router in routers:
        app.include_router(router)

    return app
