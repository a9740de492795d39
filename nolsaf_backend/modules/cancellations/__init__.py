"""Cancellation claims, refund eligibility and the admin review thread."""

from .eligibility import compute_eligibility
from .models import CancellationMessage, CancellationRequest, CancellationStatus
from .routers import admin_router, customer_router

__all__ = [
    # Models
    "CancellationRequest",
    "CancellationMessage",
    # Enums
    "CancellationStatus",
    # Policy
    "compute_eligibility",
    # Routers
    "customer_router",
    "admin_router",
]
