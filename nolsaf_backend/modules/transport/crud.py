"""CRUD operations for transport bookings."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.utils import utc_now
from .models import TransportBooking, TransportStatus

# ----- Transport Booking CRUD -----


async def get_transport_booking_by_id(
    db: AsyncSession, booking_id: int
) -> TransportBooking | None:
    result = await db.execute(
        select(TransportBooking).where(TransportBooking.id == booking_id)
    )
    return result.scalar_one_or_none()


async def get_available_bookings(
    db: AsyncSession, skip: int = 0, limit: int = 50
) -> list[TransportBooking]:
    result = await db.execute(
        select(TransportBooking)
        .where(TransportBooking.status == TransportStatus.PENDING_ASSIGNMENT)
        .order_by(TransportBooking.scheduled_date, TransportBooking.id)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_driver_bookings(
    db: AsyncSession, driver_id: int, status: TransportStatus | None = None
) -> list[TransportBooking]:
    query = select(TransportBooking).where(TransportBooking.driver_id == driver_id)
    if status is not None:
        query = query.where(TransportBooking.status == status)
    result = await db.execute(
        query.order_by(TransportBooking.scheduled_date.desc(), TransportBooking.id.desc())
    )
    return list(result.scalars().all())


async def create_transport_booking(db: AsyncSession, **fields) -> TransportBooking:
    booking = TransportBooking(status=TransportStatus.PENDING_ASSIGNMENT, **fields)
    db.add(booking)
    await db.flush()
    return booking


async def claim_booking(db: AsyncSession, booking_id: int, driver_id: int) -> bool:
    """Assign a pending booking to a driver; False if someone else got it first."""
    result = await db.execute(
        update(TransportBooking)
        .where(
            TransportBooking.id == booking_id,
            TransportBooking.status == TransportStatus.PENDING_ASSIGNMENT,
        )
        .values(
            status=TransportStatus.ASSIGNED,
            driver_id=driver_id,
            assigned_at=utc_now(),
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
