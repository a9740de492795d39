"""Cancellation request schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from ..bookings.schemas import BookingResponse
from ..payments.schemas import InvoiceResponse, PaymentEventResponse
from .models import (
    MESSAGE_MAX_LENGTH,
    REASON_MAX_LENGTH,
    CancellationStatus,
    SenderRole,
)


class EligibilityResponse(BaseModel):
    eligible: bool
    refund_percent: int
    rule: str | None = None
    next_step: str
    reason: str
    hours_since_booking: float | None = None
    hours_before_checkin: float | None = None


class CancellationRequestCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    reason: str | None = Field(None, max_length=REASON_MAX_LENGTH)
    confirm_policy: bool = False


class CancellationStatusUpdate(BaseModel):
    status: CancellationStatus | None = None
    decision_note: str | None = None


class MessageCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)


class AdminMessageCreate(MessageCreate):
    set_status: CancellationStatus | None = None


class CancellationMessageResponse(BaseModel):
    id: int
    sender_id: int
    sender_role: SenderRole
    body: str
    created_at: datetime

    class Config:
        from_attributes = True


class CancellationRequestResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    booking_code: str
    reason: str | None = None
    status: CancellationStatus
    policy_eligible: bool
    policy_refund_percent: int | None = None
    policy_rule: str | None = None
    decision_note: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CancellationDetailResponse(CancellationRequestResponse):
    booking: BookingResponse | None = None
    messages: list[CancellationMessageResponse] = Field(default_factory=list)


class PaymentInfo(BaseModel):
    invoice: InvoiceResponse | None = None
    events: list[PaymentEventResponse] = Field(default_factory=list)
    has_transaction_id: bool = False


class AdminCancellationDetailResponse(CancellationDetailResponse):
    payment: PaymentInfo = Field(default_factory=PaymentInfo)


class CancellationLookupResponse(BaseModel):
    booking: BookingResponse
    property_title: str | None = None
    code_status: str | None = None
    eligibility: EligibilityResponse
    existing_request: CancellationRequestResponse | None = None


class CancellationSubmittedResponse(BaseModel):
    request: CancellationRequestResponse
    eligibility: EligibilityResponse


class AdminMessageResponse(BaseModel):
    message: CancellationMessageResponse
    status: CancellationStatus
