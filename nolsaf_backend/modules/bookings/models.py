"""Booking and check-in code models."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...core.utils import utc_now
from ...database import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    NEW = "NEW"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELED = "CANCELED"


class CodeStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    VOID = "VOID"


class Booking(TimestampMixin, Base):
    """A stay at a property.

    ``customer_id`` is empty for walk-in or guest bookings.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    guest_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    guest_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    room_code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    check_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=0
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), nullable=False, default=BookingStatus.NEW
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
        Index("ix_bookings_customer", "customer_id"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, property_id={self.property_id}, status={self.status})>"


class CheckinCode(Base):
    """The code a guest presents at check-in.

    Only the sha256 of the normalised code is used for lookups.
    """

    __tablename__ = "checkin_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    code_visible: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[CodeStatus] = mapped_column(
        Enum(CodeStatus), nullable=False, default=CodeStatus.ACTIVE
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    used_by_owner_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<CheckinCode(id={self.id}, booking_id={self.booking_id}, status={self.status})>"
