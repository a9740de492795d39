"""Bookings and check-in codes."""

from .models import Booking, BookingStatus, CheckinCode, CodeStatus
from .routers import customer_router, owner_router

__all__ = [
    # Models
    "Booking",
    "CheckinCode",
    # Enums
    "BookingStatus",
    "CodeStatus",
    # Routers
    "customer_router",
    "owner_router",
]
