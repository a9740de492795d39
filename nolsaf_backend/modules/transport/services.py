"""Transport booking and driver dispatch logic."""

import math

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import NotFoundError, PermissionError, ValidationError
from ...core.logging import get_logger
from ...core.utils import sanitize_string, utc_now
from ..auth import crud as auth_crud
from ..auth.schemas import AuthenticatedUser
from ..notifications.services import notify_user
from ..properties import crud as property_crud
from . import crud
from .models import TransportBooking, TransportStatus
from .schemas import TransportBookingCreate

logger = get_logger(__name__)

CANCELLABLE_STATUSES = (TransportStatus.PENDING_ASSIGNMENT, TransportStatus.ASSIGNED)

# Allowed driver moves: action -> (from status, to status)
DRIVER_TRANSITIONS = {
    "start": (TransportStatus.ASSIGNED, TransportStatus.IN_PROGRESS),
    "complete": (TransportStatus.IN_PROGRESS, TransportStatus.COMPLETED),
}


def valid_coordinates(latitude: float, longitude: float) -> bool:
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90 <= latitude <= 90 and -180 <= longitude <= 180


async def _get_booking(db: AsyncSession, booking_id: int) -> TransportBooking:
    booking = await crud.get_transport_booking_by_id(db, booking_id)
    if not booking:
        raise NotFoundError("Transport booking not found")
    return booking


# ----- Passenger -----


async def create_transport_booking(
    db: AsyncSession, current_user: AuthenticatedUser, data: TransportBookingCreate
) -> TransportBooking:
    """Schedule a ride; it waits in PENDING_ASSIGNMENT for a driver.

    Raises:
        ValidationError: If either end of the trip has invalid coordinates
        NotFoundError: If the linked property does not exist
    """
    if not valid_coordinates(data.from_latitude, data.from_longitude):
        raise ValidationError("Invalid from coordinates")
    if not valid_coordinates(data.to_latitude, data.to_longitude):
        raise ValidationError("Invalid to coordinates")
    if data.property_id is not None:
        if not await property_crud.get_property_by_id(db, data.property_id):
            raise NotFoundError(f"Property with ID {data.property_id} not found")

    booking = await crud.create_transport_booking(
        db,
        user_id=current_user.id,
        guest_name=sanitize_string(data.guest_name, 160),
        guest_phone=sanitize_string(data.guest_phone, 32),
        property_id=data.property_id,
        vehicle_type=data.vehicle_type,
        scheduled_date=data.scheduled_date,
        from_latitude=data.from_latitude,
        from_longitude=data.from_longitude,
        from_address=sanitize_string(data.from_address),
        to_latitude=data.to_latitude,
        to_longitude=data.to_longitude,
        to_address=sanitize_string(data.to_address),
        amount=data.amount,
        number_of_passengers=data.number_of_passengers,
        arrival_type=data.arrival_type,
        arrival_number=sanitize_string(data.arrival_number, 40),
        transport_company=sanitize_string(data.transport_company, 120),
        arrival_time=data.arrival_time,
        pickup_location=sanitize_string(data.pickup_location),
        notes=sanitize_string(data.notes, 2000),
    )
    await db.commit()

    logger.info(
        "Transport booking created",
        extra={"transport_booking_id": booking.id, "vehicle_type": booking.vehicle_type.value},
    )
    return booking


async def get_transport_booking(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int
) -> TransportBooking:
    """Visible to the passenger, the assigned driver and admins.

    Raises:
        NotFoundError: If the booking does not exist
        PermissionError: For anyone else
    """
    booking = await _get_booking(db, booking_id)
    if not (
        booking.user_id == current_user.id
        or (booking.driver_id is not None and booking.driver_id == current_user.id)
        or current_user.is_admin
    ):
        raise PermissionError("view", "transport booking")
    return booking


async def cancel_transport_booking(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int
) -> TransportBooking:
    booking = await _get_booking(db, booking_id)
    if booking.user_id != current_user.id:
        raise PermissionError("cancel", "transport booking")
    if booking.status == TransportStatus.CANCELED:
        return booking
    if booking.status not in CANCELLABLE_STATUSES:
        raise ValidationError(
            f"Cannot cancel a trip that is {booking.status.value}"
        )

    booking.status = TransportStatus.CANCELED
    booking.canceled_at = utc_now()
    await db.commit()
    return booking


# ----- Driver -----


async def list_available(db: AsyncSession) -> list[TransportBooking]:
    return await crud.get_available_bookings(db)


async def list_driver_trips(
    db: AsyncSession, current_user: AuthenticatedUser, status: TransportStatus | None
) -> list[TransportBooking]:
    return await crud.get_driver_bookings(db, current_user.id, status)


async def accept_trip(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int
) -> TransportBooking:
    """Claim a pending trip; only one driver can win.

    Raises:
        NotFoundError: If the booking does not exist
        ValidationError: If the trip is no longer pending
    """
    booking = await _get_booking(db, booking_id)
    if booking.status != TransportStatus.PENDING_ASSIGNMENT:
        raise ValidationError(
            f"Cannot accept a trip that is {booking.status.value}"
        )
    if not await crud.claim_booking(db, booking.id, current_user.id):
        raise ValidationError("This trip has already been taken")
    await db.refresh(booking)

    driver = await auth_crud.get_user_by_id(db, current_user.id)
    await notify_user(
        db,
        booking.user_id,
        "transport_assigned",
        {
            "transport_booking_id": booking.id,
            "driver_name": driver.full_name if driver else None,
        },
    )
    await db.commit()

    logger.info(
        "Trip assigned",
        extra={"transport_booking_id": booking.id, "driver_id": current_user.id},
    )
    return booking


async def advance_trip(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int, action: str
) -> TransportBooking:
    """Apply a driver move (``start`` or ``complete``) to an assigned trip.

    Raises:
        NotFoundError: If the booking does not exist
        PermissionError: If the trip belongs to another driver
        ValidationError: If the move is not allowed from the current status
    """
    source, target = DRIVER_TRANSITIONS[action]
    booking = await _get_booking(db, booking_id)
    if booking.driver_id != current_user.id:
        raise PermissionError(action, "transport booking")
    if booking.status != source:
        raise ValidationError(
            f"Cannot {action} a trip that is {booking.status.value}"
        )

    booking.status = target
    if target == TransportStatus.IN_PROGRESS:
        booking.pickup_time = utc_now()
    else:
        booking.dropoff_time = utc_now()
    await db.commit()

    logger.info(
        f"Trip {target.value.lower()}",
        extra={"transport_booking_id": booking.id, "driver_id": current_user.id},
    )
    return booking
