"""Booking schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from ...core.utils import ensure_aware
from .models import BookingStatus


class BookingCreate(BaseModel):
    property_id: int = Field(..., gt=0)
    room_code: str | None = Field(None, max_length=120)
    check_in: datetime
    check_out: datetime
    guest_name: str | None = Field(None, max_length=160)
    guest_phone: str | None = Field(None, max_length=32)
    notes: str | None = Field(None, max_length=2000)

    @field_validator("check_in", "check_out")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Dates without an offset are read as UTC
        return ensure_aware(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class BookingResponse(BaseModel):
    id: int
    property_id: int
    customer_id: int | None = None
    guest_name: str | None = None
    guest_phone: str | None = None
    room_code: str | None = None
    check_in: datetime
    check_out: datetime
    total_amount: Decimal
    status: BookingStatus
    created_at: datetime

    class Config:
        from_attributes = True


class BookingDetailResponse(BookingResponse):
    code_status: str | None = None
    property_title: str | None = None


class BookingCreatedResponse(BookingResponse):
    """Returned once on creation; the only time the plain code is shown."""

    booking_code: str


class CodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class CodeValidationResponse(BaseModel):
    valid: bool
    booking: BookingResponse | None = None
    property_title: str | None = None
    code_status: str | None = None
    window_status: str | None = None
