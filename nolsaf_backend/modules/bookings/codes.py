"""Check-in (booking) code service.

Codes are 8 characters from an alphabet without look-alike characters
(no 0, O, I or 1). Lookups go through the sha256 of the normalised code.
"""

import enum
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import ConflictError, NotFoundError, ValidationError
from ...core.logging import get_logger
from ...core.utils import ensure_aware, start_of_day, utc_now
from ..properties.models import Property
from . import crud
from .models import Booking, BookingStatus, CheckinCode, CodeStatus

logger = get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
MAX_ISSUE_ATTEMPTS = 10


class InvalidBookingCodeError(ValidationError):
    """The code itself was rejected (unknown, used, void or another owner's)."""


class WindowStatus(str, enum.Enum):
    BEFORE_CHECKIN = "BEFORE_CHECKIN"
    IN_WINDOW = "IN_WINDOW"
    AFTER_CHECKOUT = "AFTER_CHECKOUT"


@dataclass
class CodeValidation:
    valid: bool
    error: str | None = None
    booking: Booking | None = None
    code: CheckinCode | None = None
    property: Property | None = None
    window_status: WindowStatus | None = None
    cancellation_status: str | None = None


def generate_booking_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: str | None) -> str:
    """Trim, upper-case and drop all whitespace."""
    return "".join((code or "").split()).upper()


def hash_code(code: str) -> str:
    return hashlib.sha256(normalize_code(code).encode("utf-8")).hexdigest()


def checkin_window_status(
    check_in: datetime, check_out: datetime, now: datetime | None = None
) -> WindowStatus:
    """Where ``now`` falls relative to the stay.

    The window opens at the start of the check-in day and closes at
    check-out.
    """
    now = now or utc_now()
    if now < start_of_day(check_in):
        return WindowStatus.BEFORE_CHECKIN
    if now >= ensure_aware(check_out):
        return WindowStatus.AFTER_CHECKOUT
    return WindowStatus.IN_WINDOW


async def issue_code(db: AsyncSession, booking: Booking) -> tuple[CheckinCode, str]:
    """Create the booking's check-in code.

    If the booking already has an ACTIVE code it is returned as is.

    Returns:
        Tuple of (code row, plain code)

    Raises:
        ConflictError: If no unique code was found after 10 attempts
    """
    existing = await crud.get_code_for_booking(db, booking.id)
    if existing and existing.status == CodeStatus.ACTIVE:
        return existing, existing.code_visible

    for _ in range(MAX_ISSUE_ATTEMPTS):
        plain = generate_booking_code()
        code_hash = hash_code(plain)
        if await crud.get_code_by_hash(db, code_hash):
            continue

        if existing:
            # Re-issue over a VOID or USED code; the row is one per booking.
            existing.code_hash = code_hash
            existing.code_visible = plain
            existing.status = CodeStatus.ACTIVE
            existing.generated_at = utc_now()
            existing.used_at = None
            existing.used_by_owner_id = None
            existing.voided_at = None
            existing.void_reason = None
            await db.flush()
            return existing, plain

        checkin_code = CheckinCode(
            booking_id=booking.id,
            code_hash=code_hash,
            code_visible=plain,
            status=CodeStatus.ACTIVE,
        )
        db.add(checkin_code)
        await db.flush()
        return checkin_code, plain

    raise ConflictError(
        "Failed to generate a unique booking code",
        details={"attempts": MAX_ISSUE_ATTEMPTS},
    )


def _void_message(cancellation_status: str | None) -> str:
    if cancellation_status == "REFUNDED":
        return "This booking was cancelled and refunded"
    if cancellation_status is not None:
        return "This booking is being cancelled"
    return "This booking code is no longer valid"


async def validate_booking_code(
    db: AsyncSession,
    code: str,
    owner_id: int | None = None,
    allow_used: bool = False,
    now: datetime | None = None,
) -> CodeValidation:
    """Look up a code and check it can be presented.

    Args:
        db: Database session
        code: Code as typed by the guest or owner
        owner_id: When given, the booking must be at one of this owner's properties
        allow_used: Accept USED codes (cancellation lookups)
        now: Reference time for the window status

    Returns:
        CodeValidation; ``error`` is set when ``valid`` is False
    """
    from ..cancellations.crud import get_latest_request_for_booking

    normalized = normalize_code(code)
    if not normalized:
        return CodeValidation(valid=False, error="Code is required")

    checkin_code = await crud.get_code_by_hash(db, hash_code(normalized))
    if checkin_code is None:
        return CodeValidation(valid=False, error="Invalid booking code")

    booking = await crud.get_booking_by_id(db, checkin_code.booking_id)
    if booking is None:
        return CodeValidation(valid=False, error="Booking not found for this code")
    prop = await db.get(Property, booking.property_id)

    if checkin_code.status == CodeStatus.USED and not allow_used:
        return CodeValidation(
            valid=False,
            error="This booking code has already been used",
            booking=booking,
            code=checkin_code,
        )

    if checkin_code.status == CodeStatus.VOID:
        latest = await get_latest_request_for_booking(db, booking.id)
        status = latest.status.value if latest else None
        return CodeValidation(
            valid=False,
            error=_void_message(status),
            booking=booking,
            code=checkin_code,
            cancellation_status=status,
        )

    if owner_id is not None and (prop is None or prop.owner_id != owner_id):
        return CodeValidation(
            valid=False, error="This booking does not belong to your property"
        )

    return CodeValidation(
        valid=True,
        booking=booking,
        code=checkin_code,
        property=prop,
        window_status=checkin_window_status(booking.check_in, booking.check_out, now),
    )


async def mark_booking_code_used(
    db: AsyncSession,
    code: str,
    owner_id: int,
    now: datetime | None = None,
) -> Booking:
    """Check a guest in with their code.

    Calling it again for a booking that is already CHECKED_IN returns the
    booking unchanged.

    Raises:
        ValidationError: If the code is invalid or outside the check-in window
    """
    result = await validate_booking_code(db, code, owner_id, allow_used=True, now=now)
    if not result.valid:
        raise InvalidBookingCodeError(result.error)

    booking, checkin_code = result.booking, result.code
    if checkin_code.status == CodeStatus.USED:
        if booking.status == BookingStatus.CHECKED_IN:
            return booking
        raise InvalidBookingCodeError("This booking code has already been used")

    if result.window_status == WindowStatus.BEFORE_CHECKIN:
        raise ValidationError(
            "Check-in is not open yet for this booking",
            data={"window_status": result.window_status.value},
        )
    if result.window_status == WindowStatus.AFTER_CHECKOUT:
        raise ValidationError(
            "This booking's check-out time has passed",
            data={"window_status": result.window_status.value},
        )

    checkin_code.status = CodeStatus.USED
    checkin_code.used_at = now or utc_now()
    checkin_code.used_by_owner_id = owner_id
    booking.status = BookingStatus.CHECKED_IN
    await db.flush()

    logger.info(
        "Guest checked in",
        extra={"booking_id": booking.id, "owner_id": owner_id},
    )
    return booking


async def void_code(
    db: AsyncSession, booking_id: int, reason: str | None = None
) -> CheckinCode:
    """Mark a booking's code VOID.

    Raises:
        NotFoundError: If the booking has no code
    """
    checkin_code = await crud.get_code_for_booking(db, booking_id)
    if checkin_code is None:
        raise NotFoundError(f"No booking code for booking {booking_id}")
    checkin_code.status = CodeStatus.VOID
    checkin_code.voided_at = utc_now()
    checkin_code.void_reason = reason
    await db.flush()
    return checkin_code
