"""Invoices, AzamPay checkout and mobile-money webhooks."""

from .models import Invoice, InvoiceStatus, PaymentEvent, PaymentEventStatus
from .routers import router, webhook_router

__all__ = [
    # Models
    "Invoice",
    "PaymentEvent",
    # Enums
    "InvoiceStatus",
    "PaymentEventStatus",
    # Routers
    "router",
    "webhook_router",
]
