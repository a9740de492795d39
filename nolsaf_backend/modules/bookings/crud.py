"""CRUD operations for bookings and check-in codes."""

from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..properties.models import Property
from .models import Booking, BookingStatus, CheckinCode

# ----- Booking CRUD -----


async def get_booking_by_id(db: AsyncSession, booking_id: int) -> Booking | None:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    return result.scalar_one_or_none()


async def get_customer_booking(
    db: AsyncSession, booking_id: int, customer_id: int
) -> Booking | None:
    result = await db.execute(
        select(Booking).where(
            and_(Booking.id == booking_id, Booking.customer_id == customer_id)
        )
    )
    return result.scalar_one_or_none()


async def get_owner_booking(
    db: AsyncSession, booking_id: int, owner_id: int
) -> Booking | None:
    """Get a booking only if it is at one of the owner's properties."""
    result = await db.execute(
        select(Booking)
        .join(Property, Property.id == Booking.property_id)
        .where(and_(Booking.id == booking_id, Property.owner_id == owner_id))
    )
    return result.scalar_one_or_none()


async def get_customer_bookings(
    db: AsyncSession,
    customer_id: int,
    status: BookingStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    filters = [Booking.customer_id == customer_id]
    if status is not None:
        filters.append(Booking.status == status)

    count_result = await db.execute(
        select(func.count()).select_from(Booking).where(*filters)
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        select(Booking)
        .where(*filters)
        .order_by(Booking.check_in.desc(), Booking.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_checked_in_bookings(db: AsyncSession, owner_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .join(Property, Property.id == Booking.property_id)
        .where(
            and_(
                Property.owner_id == owner_id,
                Booking.status == BookingStatus.CHECKED_IN,
            )
        )
        .order_by(Booking.check_in)
    )
    return list(result.scalars().all())


async def get_overlapping_bookings(
    db: AsyncSession,
    property_id: int,
    start: datetime,
    end: datetime,
) -> list[Booking]:
    """Occupying bookings whose stay intersects [start, end)."""
    result = await db.execute(
        select(Booking).where(
            and_(
                Booking.property_id == property_id,
                Booking.check_in < end,
                Booking.check_out > start,
                Booking.status.in_(
                    [BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN]
                ),
            )
        )
    )
    return list(result.scalars().all())


async def create_booking(db: AsyncSession, **fields) -> Booking:
    booking = Booking(**fields)
    db.add(booking)
    await db.flush()
    return booking


# ----- Check-in Code CRUD -----


async def get_code_by_hash(db: AsyncSession, code_hash: str) -> CheckinCode | None:
    result = await db.execute(
        select(CheckinCode).where(CheckinCode.code_hash == code_hash)
    )
    return result.scalar_one_or_none()


async def get_code_for_booking(
    db: AsyncSession, booking_id: int
) -> CheckinCode | None:
    result = await db.execute(
        select(CheckinCode).where(CheckinCode.booking_id == booking_id)
    )
    return result.scalar_one_or_none()


async def get_codes_for_bookings(
    db: AsyncSession, booking_ids: list[int]
) -> dict[int, CheckinCode]:
    if not booking_ids:
        return {}
    result = await db.execute(
        select(CheckinCode).where(CheckinCode.booking_id.in_(booking_ids))
    )
    return {code.booking_id: code for code in result.scalars().all()}
