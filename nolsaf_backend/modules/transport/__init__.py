"""Ride bookings and driver dispatch."""

from .models import TransportBooking, TransportStatus, VehicleType
from .routers import driver_router, router

__all__ = [
    # Models
    "TransportBooking",
    # Enums
    "TransportStatus",
    "VehicleType",
    # Routers
    "router",
    "driver_router",
]
