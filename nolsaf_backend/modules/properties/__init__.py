"""Property listings, auto-layout and room availability."""

from .layout import compute_room_availability, generate_layout
from .models import Property, PropertyStatus
from .routers import admin_router, owner_router, public_router

__all__ = [
    # Models
    "Property",
    "PropertyStatus",
    # Layout
    "generate_layout",
    "compute_room_availability",
    # Routers
    "owner_router",
    "public_router",
    "admin_router",
]
