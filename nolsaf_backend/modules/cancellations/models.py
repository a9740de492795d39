"""Cancellation request models."""

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...core.utils import utc_now
from ...database import Base, TimestampMixin

REASON_MAX_LENGTH = 2000
NOTE_MAX_LENGTH = 4000
MESSAGE_MAX_LENGTH = 4000


class CancellationStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    REVIEWING = "REVIEWING"
    NEED_INFO = "NEED_INFO"
    PROCESSING = "PROCESSING"
    REFUNDED = "REFUNDED"
    REJECTED = "REJECTED"


# Statuses that take the booking off the books.
VOIDING_STATUSES = (CancellationStatus.PROCESSING, CancellationStatus.REFUNDED)


class SenderRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class CancellationRequest(TimestampMixin, Base):
    """A customer's claim to cancel a booking.

    The policy_* columns snapshot the eligibility decision at submission.
    """

    __tablename__ = "cancellation_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    booking_code: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[CancellationStatus] = mapped_column(
        Enum(CancellationStatus),
        nullable=False,
        default=CancellationStatus.SUBMITTED,
    )

    policy_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False)
    policy_refund_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    policy_rule: Mapped[str | None] = mapped_column(String(40), nullable=True)

    decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_cancellation_requests_booking", "booking_id"),
        Index("ix_cancellation_requests_status", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CancellationRequest(id={self.id}, booking_id={self.booking_id}, status={self.status})>"


class CancellationMessage(Base):
    """A message in the thread between the customer and the admin team."""

    __tablename__ = "cancellation_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cancellation_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sender_role: Mapped[SenderRole] = mapped_column(Enum(SenderRole), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("ix_cancellation_messages_request", "request_id"),)
