"""CRUD operations for properties."""

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Property, PropertyStatus

# ----- Property CRUD -----


async def get_property_by_id(db: AsyncSession, property_id: int) -> Property | None:
    result = await db.execute(select(Property).where(Property.id == property_id))
    return result.scalar_one_or_none()


async def get_owner_property(
    db: AsyncSession, property_id: int, owner_id: int
) -> Property | None:
    """Get a property only if it belongs to the owner."""
    result = await db.execute(
        select(Property).where(
            and_(Property.id == property_id, Property.owner_id == owner_id)
        )
    )
    return result.scalar_one_or_none()


async def get_approved_property(db: AsyncSession, property_id: int) -> Property | None:
    result = await db.execute(
        select(Property).where(
            and_(
                Property.id == property_id,
                Property.status == PropertyStatus.APPROVED,
            )
        )
    )
    return result.scalar_one_or_none()


async def get_properties(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    owner_id: int | None = None,
    status: PropertyStatus | None = None,
    region: str | None = None,
    property_type: str | None = None,
) -> tuple[list[Property], int]:
    """Get properties with filtering and pagination.

    Returns:
        Tuple of (list of properties, total count)
    """
    filters = []
    if owner_id is not None:
        filters.append(Property.owner_id == owner_id)
    if status is not None:
        filters.append(Property.status == status)
    if region:
        filters.append(func.lower(Property.region) == region.strip().lower())
    if property_type:
        filters.append(func.upper(Property.type) == property_type.strip().upper())

    count_result = await db.execute(
        select(func.count()).select_from(Property).where(*filters)
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        select(Property)
        .where(*filters)
        .order_by(Property.created_at.desc(), Property.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_property(db: AsyncSession, owner_id: int, **fields) -> Property:
    prop = Property(owner_id=owner_id, status=PropertyStatus.DRAFT, **fields)
    db.add(prop)
    await db.flush()
    return prop


async def update_property(db: AsyncSession, prop: Property, **fields) -> Property:
    for key, value in fields.items():
        setattr(prop, key, value)
    await db.flush()
    return prop
