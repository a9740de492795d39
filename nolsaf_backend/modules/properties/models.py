"""Property listing models."""

import enum

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ...database import Base, TimestampMixin


class PropertyStatus(str, enum.Enum):
    """Listing lifecycle: DRAFT -> PENDING -> APPROVED | REJECTED."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


EDITABLE_STATUSES = (PropertyStatus.DRAFT, PropertyStatus.REJECTED)


class Property(TimestampMixin, Base):
    """An accommodation listing owned by an OWNER user.

    ``rooms_spec`` holds the room-type specs entered by the owner;
    ``layout`` holds the generated floor plan.
    """

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    region: Mapped[str | None] = mapped_column(String(120), nullable=True)
    district: Mapped[str | None] = mapped_column(String(120), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    rooms_spec: Mapped[list | None] = mapped_column(JSON, nullable=True)
    total_floors: Mapped[int | None] = mapped_column(Integer, nullable=True)
    layout: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    status: Mapped[PropertyStatus] = mapped_column(
        Enum(PropertyStatus), nullable=False, default=PropertyStatus.DRAFT
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_properties_owner", "owner_id"),
        Index("ix_properties_status_region", "status", "region"),
    )

    @property
    def room_count(self) -> int:
        total = 0
        for spec in self.rooms_spec or []:
            try:
                total += max(0, int(spec.get("roomsCount") or 0))
            except (TypeError, ValueError, AttributeError):
                continue
        return total

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title}, status={self.status})>"
