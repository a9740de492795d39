"""Booking business logic services."""

import math
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import (
    ConflictError,
    NotFoundError,
    TooManyAttemptsError,
    ValidationError,
)
from ...core.logging import get_logger
from ...core.utils import ensure_aware, utc_now
from ..auth.schemas import AuthenticatedUser
from ..notifications.services import notify_owner
from ..properties import crud as property_crud
from ..properties.layout import layout_room_codes
from ..properties.models import Property
from . import codes, crud
from .attempts import code_attempt_tracker
from .models import Booking, BookingStatus, CodeStatus
from .schemas import (
    BookingCreate,
    BookingCreatedResponse,
    BookingDetailResponse,
    BookingResponse,
    CodeValidationResponse,
)

logger = get_logger(__name__)


def _room_price(prop: Property, room_code: str | None) -> Decimal:
    """Nightly price of a room, falling back to the cheapest room type."""
    if room_code:
        for floor in (prop.layout or {}).get("floors") or []:
            for room in floor.get("rooms") or []:
                if room.get("code") == room_code:
                    return Decimal(str(room.get("pricePerNight") or 0))

    prices = [
        Decimal(str(spec.get("pricePerNight")))
        for spec in prop.rooms_spec or []
        if spec.get("pricePerNight")
    ]
    return min(prices) if prices else Decimal("0")


def stay_nights(booking: Booking | BookingCreate) -> int:
    seconds = (
        ensure_aware(booking.check_out) - ensure_aware(booking.check_in)
    ).total_seconds()
    return max(1, math.ceil(seconds / 86400))


async def create_booking(
    db: AsyncSession, current_user: AuthenticatedUser, data: BookingCreate
) -> BookingCreatedResponse:
    """Book a stay at an approved property.

    The booking is CONFIRMED straight away and a check-in code is issued.

    Raises:
        NotFoundError: If the property is not listed
        ValidationError: If the room code is not in the property's layout
        ConflictError: If the room is already taken for those dates
    """
    prop = await property_crud.get_approved_property(db, data.property_id)
    if not prop:
        raise NotFoundError(f"Property with ID {data.property_id} not found")

    if data.room_code:
        if prop.layout and data.room_code not in layout_room_codes(prop.layout):
            raise ValidationError(
                f"Unknown room '{data.room_code}'", field="room_code"
            )
        overlapping = await crud.get_overlapping_bookings(
            db, prop.id, data.check_in, data.check_out
        )
        if any(b.room_code == data.room_code for b in overlapping):
            raise ConflictError("Room is not available for the selected dates")

    booking = await crud.create_booking(
        db,
        property_id=prop.id,
        customer_id=current_user.id,
        guest_name=data.guest_name,
        guest_phone=data.guest_phone,
        room_code=data.room_code,
        check_in=data.check_in,
        check_out=data.check_out,
        total_amount=_room_price(prop, data.room_code) * stay_nights(data),
        status=BookingStatus.CONFIRMED,
        notes=data.notes,
    )
    _, plain_code = await codes.issue_code(db, booking)

    await notify_owner(
        db,
        prop.owner_id,
        "booking_created",
        {
            "booking_id": booking.id,
            "property_title": prop.title,
            "check_in": booking.check_in.date().isoformat(),
        },
    )
    await db.commit()

    logger.info(
        "Booking created",
        extra={"booking_id": booking.id, "property_id": prop.id},
    )
    return BookingCreatedResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        booking_code=plain_code,
    )


async def list_customer_bookings(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    status: BookingStatus | None,
    skip: int,
    limit: int,
) -> tuple[list[Booking], int]:
    return await crud.get_customer_bookings(
        db, current_user.id, status=status, skip=skip, limit=limit
    )


async def get_customer_booking(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int
) -> BookingDetailResponse:
    booking = await crud.get_customer_booking(db, booking_id, current_user.id)
    if not booking:
        raise NotFoundError(f"Booking with ID {booking_id} not found")

    checkin_code = await crud.get_code_for_booking(db, booking.id)
    prop = await property_crud.get_property_by_id(db, booking.property_id)
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        code_status=checkin_code.status.value if checkin_code else None,
        property_title=prop.title if prop else None,
    )


# ----- Owner check-in -----


def _ensure_not_locked(owner_id: int) -> None:
    locked_for = code_attempt_tracker.locked_for(owner_id)
    if locked_for > 0:
        raise TooManyAttemptsError(
            "Too many invalid booking codes. Try again in a few minutes.", locked_for
        )


def _record_bad_code(owner_id: int) -> None:
    if code_attempt_tracker.record_failure(owner_id):
        logger.warning(
            "Owner locked out of booking code checks", extra={"owner_id": owner_id}
        )


async def preview_code(
    db: AsyncSession, current_user: AuthenticatedUser, code: str
) -> CodeValidationResponse:
    """Validate a code without consuming it.

    Raises:
        TooManyAttemptsError: If the owner is locked out after repeated bad codes
        ValidationError: With the reason the code cannot be used
    """
    _ensure_not_locked(current_user.id)
    result = await codes.validate_booking_code(db, code, owner_id=current_user.id)
    if not result.valid:
        _record_bad_code(current_user.id)
        data = None
        if result.cancellation_status:
            data = {"cancellation_status": result.cancellation_status}
        raise ValidationError(result.error, data=data)

    code_attempt_tracker.clear(current_user.id)
    return CodeValidationResponse(
        valid=True,
        booking=BookingResponse.model_validate(result.booking),
        property_title=result.property.title if result.property else None,
        code_status=result.code.status.value,
        window_status=result.window_status.value,
    )


async def confirm_checkin(
    db: AsyncSession, current_user: AuthenticatedUser, code: str
) -> Booking:
    """Check a guest in; wrong codes count towards the owner's lockout."""
    _ensure_not_locked(current_user.id)
    try:
        booking = await codes.mark_booking_code_used(db, code, current_user.id)
    except codes.InvalidBookingCodeError:
        _record_bad_code(current_user.id)
        raise
    code_attempt_tracker.clear(current_user.id)
    await db.commit()
    return booking


async def checkout_booking(
    db: AsyncSession, current_user: AuthenticatedUser, booking_id: int
) -> Booking:
    """Check a guest out.

    Raises:
        NotFoundError: If the booking is not at the owner's property
        ValidationError: If the guest is not checked in
    """
    booking = await crud.get_owner_booking(db, booking_id, current_user.id)
    if not booking:
        raise NotFoundError(f"Booking with ID {booking_id} not found")
    if booking.status == BookingStatus.CHECKED_OUT:
        return booking
    if booking.status != BookingStatus.CHECKED_IN:
        raise ValidationError(
            f"Cannot check out a booking in status {booking.status.value}"
        )

    booking.status = BookingStatus.CHECKED_OUT
    checkin_code = await crud.get_code_for_booking(db, booking.id)
    if checkin_code and checkin_code.status == CodeStatus.ACTIVE:
        checkin_code.status = CodeStatus.USED
        checkin_code.used_at = utc_now()
        checkin_code.used_by_owner_id = current_user.id
    await db.commit()
    return booking


async def list_checked_in(
    db: AsyncSession, current_user: AuthenticatedUser
) -> list[Booking]:
    return await crud.get_checked_in_bookings(db, current_user.id)
