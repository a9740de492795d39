"""Transport booking schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .models import ArrivalType, TransportStatus, VehicleType

MAX_AMOUNT = Decimal("10000000")
MAX_PASSENGERS = 20


class TransportBookingCreate(BaseModel):
    guest_name: str | None = Field(None, max_length=160)
    guest_phone: str | None = Field(None, max_length=32)
    property_id: int | None = Field(None, gt=0)
    vehicle_type: VehicleType
    scheduled_date: datetime
    from_latitude: float = Field(..., ge=-90, le=90)
    from_longitude: float = Field(..., ge=-180, le=180)
    from_address: str = Field(..., min_length=1, max_length=255)
    to_latitude: float = Field(..., ge=-90, le=90)
    to_longitude: float = Field(..., ge=-180, le=180)
    to_address: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    number_of_passengers: int = Field(1, ge=1, le=MAX_PASSENGERS)
    arrival_type: ArrivalType | None = None
    arrival_number: str | None = Field(None, max_length=40)
    transport_company: str | None = Field(None, max_length=120)
    arrival_time: datetime | None = None
    pickup_location: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=2000)


class TransportBookingResponse(BaseModel):
    id: int
    user_id: int
    guest_name: str | None = None
    guest_phone: str | None = None
    property_id: int | None = None
    vehicle_type: VehicleType
    scheduled_date: datetime
    from_latitude: float
    from_longitude: float
    from_address: str
    to_latitude: float
    to_longitude: float
    to_address: str
    amount: Decimal
    currency: str
    number_of_passengers: int
    arrival_type: ArrivalType | None = None
    arrival_number: str | None = None
    transport_company: str | None = None
    arrival_time: datetime | None = None
    pickup_location: str | None = None
    notes: str | None = None
    status: TransportStatus
    driver_id: int | None = None
    assigned_at: datetime | None = None
    pickup_time: datetime | None = None
    dropoff_time: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True
