"""FastAPI dependencies."""

from fastapi import Request

from cozynook.domain.context import BookingContext


def get_booking_context(request: Request) -> BookingContext:
    """BookingContext attached to the app by create_app."""
    return request.app.state.booking_ctx
