"""Property schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .models import PropertyStatus

# ----- Room-type spec -----


class RoomTypeSpec(BaseModel):
    """One room type as entered by the owner.

    Field names follow the listing form (camelCase) since the same document
    is stored and fed to the layout generator.
    """

    roomType: str = Field(..., min_length=1, max_length=80)
    roomsCount: int = Field(..., ge=0, le=500)
    pricePerNight: float | None = Field(None, ge=0)
    roomImages: list[str] = Field(default_factory=list)
    bathItems: list[str] = Field(default_factory=list)
    otherAmenities: list[str] = Field(default_factory=list)
    bathPrivate: str | None = Field(None, pattern="^(yes|no)$")
    floorDistribution: dict[str, int] | str | None = None


# ----- Property Schemas -----


class PropertyBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=40)
    region: str | None = Field(None, max_length=120)
    district: str | None = Field(None, max_length=120)
    address: str | None = Field(None, max_length=255)
    description: str | None = None
    rooms_spec: list[RoomTypeSpec] = Field(default_factory=list)
    total_floors: int | None = Field(None, ge=0, le=10)


class PropertyCreate(PropertyBase):
    pass


class PropertyUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""

    title: str | None = Field(None, min_length=1, max_length=200)
    type: str | None = Field(None, min_length=1, max_length=40)
    region: str | None = Field(None, max_length=120)
    district: str | None = Field(None, max_length=120)
    address: str | None = Field(None, max_length=255)
    description: str | None = None
    rooms_spec: list[RoomTypeSpec] | None = None
    total_floors: int | None = Field(None, ge=0, le=10)


class PropertyResponse(BaseModel):
    id: int
    owner_id: int
    title: str
    type: str
    region: str | None = None
    district: str | None = None
    address: str | None = None
    description: str | None = None
    rooms_spec: list[dict[str, Any]] | None = None
    total_floors: int | None = None
    room_count: int
    status: PropertyStatus
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicPropertyResponse(BaseModel):
    """Listing view for guests; owner-only fields are left out."""

    id: int
    title: str
    type: str
    region: str | None = None
    district: str | None = None
    address: str | None = None
    description: str | None = None
    rooms_spec: list[dict[str, Any]] | None = None
    room_count: int
    layout: dict[str, Any] | None = None

    class Config:
        from_attributes = True


class RejectPropertyRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


# ----- Availability -----


class RoomBookingSlot(BaseModel):
    id: int
    check_in: datetime
    check_out: datetime
    status: str
    nights: int


class RoomAvailability(BaseModel):
    code: str
    busy: bool
    occupancy_pct: int
    nights_booked: int
    nights_total: int
    bookings: list[RoomBookingSlot]


class AvailabilityWindow(BaseModel):
    from_: datetime = Field(..., alias="from")
    to: datetime

    class Config:
        populate_by_name = True


class AvailabilityResponse(BaseModel):
    window: AvailabilityWindow
    nights_total: int
    rooms: list[RoomAvailability]
