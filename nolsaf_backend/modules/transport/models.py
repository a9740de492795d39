"""Transport (ride) booking models."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, TimestampMixin


class VehicleType(str, enum.Enum):
    BODA = "BODA"
    BAJAJI = "BAJAJI"
    CAR = "CAR"
    XL = "XL"


class ArrivalType(str, enum.Enum):
    FLIGHT = "FLIGHT"
    BUS = "BUS"
    TRAIN = "TRAIN"
    FERRY = "FERRY"
    OTHER = "OTHER"


class TransportStatus(str, enum.Enum):
    PENDING_ASSIGNMENT = "PENDING_ASSIGNMENT"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class TransportBooking(TimestampMixin, Base):
    """A scheduled ride, dispatched to the first driver who accepts it."""

    __tablename__ = "transport_bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    guest_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    guest_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    property_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
    )

    vehicle_type: Mapped[VehicleType] = mapped_column(Enum(VehicleType), nullable=False)
    scheduled_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    from_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    from_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    from_address: Mapped[str] = mapped_column(String(255), nullable=False)
    to_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    to_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    to_address: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="TZS")
    number_of_passengers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    arrival_type: Mapped[ArrivalType | None] = mapped_column(
        Enum(ArrivalType), nullable=True
    )
    arrival_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    transport_company: Mapped[str | None] = mapped_column(String(120), nullable=True)
    arrival_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pickup_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[TransportStatus] = mapped_column(
        Enum(TransportStatus),
        nullable=False,
        default=TransportStatus.PENDING_ASSIGNMENT,
    )
    driver_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pickup_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    dropoff_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    canceled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_transport_bookings_status", "status", "scheduled_date"),
        Index("ix_transport_bookings_driver", "driver_id"),
        Index("ix_transport_bookings_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<TransportBooking(id={self.id}, status={self.status})>"
