"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from .models import InvoiceStatus, PaymentEventStatus

MobileProvider = Literal["Airtel", "Tigo", "M-Pesa", "Halopesa"]


class InitiatePaymentRequest(BaseModel):
    invoice_id: int = Field(..., gt=0)
    phone_number: str = Field(
        ..., min_length=9, max_length=20, pattern=r"^[\d+\s\-()]+$"
    )
    provider: MobileProvider = "Airtel"
    idempotency_key: str | None = Field(None, min_length=8, max_length=128)


class InitiatePaymentResponse(BaseModel):
    idempotency_key: str
    cached: bool = False
    transaction_id: str
    payment_ref: str
    status: str
    checkout_url: str | None = None


class InvoiceResponse(BaseModel):
    id: int
    booking_id: int | None = None
    owner_id: int | None = None
    invoice_number: str
    total: Decimal
    net_payable: Decimal
    currency: str
    status: InvoiceStatus
    payment_ref: str | None = None
    payment_method: str | None = None
    paid_at: datetime | None = None
    receipt_number: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentEventResponse(BaseModel):
    id: int
    provider: str
    event_id: str
    amount: Decimal
    currency: str
    status: PaymentEventStatus
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    payment_ref: str
    invoice_status: InvoiceStatus
    payment_status: str
    currency: str
    events: list[PaymentEventResponse] = Field(default_factory=list)


class WebhookAck(BaseModel):
    ok: bool = True
    id: int
    duplicate: bool = False

