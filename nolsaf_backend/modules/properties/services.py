"""Property listing business logic services."""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import NotFoundError, ValidationError
from ...core.logging import get_logger
from ...core.utils import ensure_aware, start_of_day, utc_now
from ..auth.schemas import AuthenticatedUser
from ..notifications.services import notify_admins, notify_owner
from . import crud
from .layout import compute_room_availability, generate_layout
from .models import EDITABLE_STATUSES, Property, PropertyStatus
from .schemas import PropertyCreate, PropertyUpdate

logger = get_logger(__name__)


def _dump_rooms(rooms_spec) -> list[dict]:
    return [spec.model_dump(exclude_none=True) for spec in rooms_spec]


async def _get_owned(
    db: AsyncSession, current_user: AuthenticatedUser, property_id: int
) -> Property:
    prop = await crud.get_owner_property(db, property_id, current_user.id)
    if not prop:
        raise NotFoundError(f"Property with ID {property_id} not found")
    return prop


# ----- Owner -----


async def create_property(
    db: AsyncSession, current_user: AuthenticatedUser, data: PropertyCreate
) -> Property:
    prop = await crud.create_property(
        db,
        owner_id=current_user.id,
        title=data.title.strip(),
        type=data.type.strip().upper(),
        region=data.region,
        district=data.district,
        address=data.address,
        description=data.description,
        rooms_spec=_dump_rooms(data.rooms_spec),
        total_floors=data.total_floors,
    )
    await db.commit()
    logger.info("Property created", extra={"property_id": prop.id})
    return prop


async def list_owner_properties(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    status: PropertyStatus | None,
    skip: int,
    limit: int,
) -> tuple[list[Property], int]:
    return await crud.get_properties(
        db, skip=skip, limit=limit, owner_id=current_user.id, status=status
    )


async def get_owner_property(
    db: AsyncSession, current_user: AuthenticatedUser, property_id: int
) -> Property:
    return await _get_owned(db, current_user, property_id)


async def update_property(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    property_id: int,
    data: PropertyUpdate,
) -> Property:
    """Edit a listing while it is DRAFT or REJECTED.

    Changing rooms or floors drops the stored layout so it is regenerated.

    Raises:
        NotFoundError: If the property is not the caller's
        ValidationError: If the listing is not editable
    """
    prop = await _get_owned(db, current_user, property_id)
    if prop.status not in EDITABLE_STATUSES:
        raise ValidationError(
            f"Property cannot be edited while {prop.status.value}"
        )

    fields = data.model_dump(exclude_unset=True)
    if "rooms_spec" in fields:
        fields["rooms_spec"] = _dump_rooms(data.rooms_spec or [])
    if "type" in fields and fields["type"]:
        fields["type"] = fields["type"].strip().upper()
    if "rooms_spec" in fields or "total_floors" in fields:
        fields["layout"] = None

    await crud.update_property(db, prop, **fields)
    await db.commit()
    return prop


async def submit_property(
    db: AsyncSession, current_user: AuthenticatedUser, property_id: int
) -> Property:
    """Send a listing for admin review."""
    prop = await _get_owned(db, current_user, property_id)
    if prop.status not in EDITABLE_STATUSES:
        raise ValidationError(
            f"Property cannot be submitted while {prop.status.value}"
        )
    if prop.room_count == 0:
        raise ValidationError("Add at least one room before submitting")

    prop.status = PropertyStatus.PENDING
    prop.rejection_reason = None
    await notify_admins(
        db,
        "property_submitted",
        {"property_id": prop.id, "property_title": prop.title},
    )
    await db.commit()
    return prop


def _build_layout(prop: Property) -> dict:
    return generate_layout(prop.type, prop.rooms_spec or [], prop.total_floors)


async def regenerate_layout(
    db: AsyncSession, current_user: AuthenticatedUser, property_id: int
) -> dict:
    prop = await _get_owned(db, current_user, property_id)
    prop.layout = _build_layout(prop)
    await db.commit()
    return prop.layout


async def get_layout(
    db: AsyncSession, current_user: AuthenticatedUser, property_id: int
) -> dict:
    prop = await _get_owned(db, current_user, property_id)
    if not prop.layout:
        raise ValidationError("No layout yet")
    return prop.layout


def parse_window(
    date_from: str | None, date_to: str | None, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Parse an availability window and normalise both ends to midnight UTC.

    Defaults to now through 24 hours from now.

    Raises:
        ValidationError: If either end is unparsable or ``to`` is not after ``from``
    """
    now = now or utc_now()
    try:
        start = ensure_aware(datetime.fromisoformat(date_from)) if date_from else now
        end = (
            ensure_aware(datetime.fromisoformat(date_to))
            if date_to
            else now + timedelta(days=1)
        )
    except ValueError:
        raise ValidationError("Invalid date range")
    if end <= start:
        raise ValidationError("Invalid date range")
    return start_of_day(start), start_of_day(end)


async def get_availability(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    property_id: int,
    date_from: str | None,
    date_to: str | None,
) -> dict:
    from ..bookings import crud as booking_crud

    prop = await _get_owned(db, current_user, property_id)
    if not prop.layout:
        raise ValidationError("No layout yet")

    start, end = parse_window(date_from, date_to)
    bookings = await booking_crud.get_overlapping_bookings(db, prop.id, start, end)
    return compute_room_availability(prop.layout, bookings, start, end)


# ----- Public -----


async def list_public_properties(
    db: AsyncSession,
    region: str | None,
    property_type: str | None,
    skip: int,
    limit: int,
) -> tuple[list[Property], int]:
    return await crud.get_properties(
        db,
        skip=skip,
        limit=limit,
        status=PropertyStatus.APPROVED,
        region=region,
        property_type=property_type,
    )


async def get_public_property(db: AsyncSession, property_id: int) -> Property:
    prop = await crud.get_approved_property(db, property_id)
    if not prop:
        raise NotFoundError(f"Property with ID {property_id} not found")
    return prop


# ----- Admin -----


async def list_admin_properties(
    db: AsyncSession, status: PropertyStatus | None, skip: int, limit: int
) -> tuple[list[Property], int]:
    return await crud.get_properties(db, skip=skip, limit=limit, status=status)


async def _get_any(db: AsyncSession, property_id: int) -> Property:
    prop = await crud.get_property_by_id(db, property_id)
    if not prop:
        raise NotFoundError(f"Property with ID {property_id} not found")
    return prop


async def approve_property(db: AsyncSession, property_id: int) -> Property:
    """Approve a listing, generating its layout if it has none."""
    prop = await _get_any(db, property_id)
    if prop.status == PropertyStatus.APPROVED:
        return prop

    if not prop.layout:
        prop.layout = _build_layout(prop)
    prop.status = PropertyStatus.APPROVED
    prop.rejection_reason = None
    await notify_owner(
        db,
        prop.owner_id,
        "property_approved",
        {"property_id": prop.id, "property_title": prop.title},
    )
    await db.commit()
    logger.info("Property approved", extra={"property_id": prop.id})
    return prop


async def reject_property(db: AsyncSession, property_id: int, reason: str) -> Property:
    prop = await _get_any(db, property_id)
    prop.status = PropertyStatus.REJECTED
    prop.rejection_reason = reason.strip()
    await notify_owner(
        db,
        prop.owner_id,
        "property_rejected",
        {
            "property_id": prop.id,
            "property_title": prop.title,
            "reasons": prop.rejection_reason,
        },
    )
    await db.commit()
    return prop
