"""CRUD operations for cancellation requests."""

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import CancellationMessage, CancellationRequest, CancellationStatus

# ----- Cancellation Request CRUD -----


async def get_request_by_id(
    db: AsyncSession, request_id: int
) -> CancellationRequest | None:
    result = await db.execute(
        select(CancellationRequest).where(CancellationRequest.id == request_id)
    )
    return result.scalar_one_or_none()


async def get_user_request(
    db: AsyncSession, request_id: int, user_id: int
) -> CancellationRequest | None:
    result = await db.execute(
        select(CancellationRequest).where(
            and_(
                CancellationRequest.id == request_id,
                CancellationRequest.user_id == user_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def get_request_for_booking(
    db: AsyncSession, booking_id: int, user_id: int
) -> CancellationRequest | None:
    """Any request the user has made for a booking, whatever its status."""
    result = await db.execute(
        select(CancellationRequest)
        .where(
            and_(
                CancellationRequest.booking_id == booking_id,
                CancellationRequest.user_id == user_id,
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_latest_request_for_booking(
    db: AsyncSession, booking_id: int
) -> CancellationRequest | None:
    result = await db.execute(
        select(CancellationRequest)
        .where(CancellationRequest.booking_id == booking_id)
        .order_by(CancellationRequest.created_at.desc(), CancellationRequest.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_user_requests(
    db: AsyncSession, user_id: int
) -> list[CancellationRequest]:
    result = await db.execute(
        select(CancellationRequest)
        .where(CancellationRequest.user_id == user_id)
        .order_by(CancellationRequest.created_at.desc(), CancellationRequest.id.desc())
    )
    return list(result.scalars().all())


async def get_requests(
    db: AsyncSession,
    status: CancellationStatus | None = None,
    q: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[CancellationRequest], int]:
    """Admin listing; ``q`` matches part of the booking code or the request id."""
    filters = []
    if status is not None:
        filters.append(CancellationRequest.status == status)
    query_text = (q or "").strip()
    if query_text:
        matches = [CancellationRequest.booking_code.contains(query_text.upper())]
        if query_text.isdigit():
            matches.append(CancellationRequest.id == int(query_text))
        filters.append(or_(*matches))

    count_result = await db.execute(
        select(func.count()).select_from(CancellationRequest).where(*filters)
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        select(CancellationRequest)
        .where(*filters)
        .order_by(CancellationRequest.created_at.desc(), CancellationRequest.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_request(db: AsyncSession, **fields) -> CancellationRequest:
    request = CancellationRequest(**fields)
    db.add(request)
    await db.flush()
    return request


# ----- Message CRUD -----


async def get_messages(
    db: AsyncSession, request_id: int
) -> list[CancellationMessage]:
    result = await db.execute(
        select(CancellationMessage)
        .where(CancellationMessage.request_id == request_id)
        .order_by(CancellationMessage.created_at, CancellationMessage.id)
    )
    return list(result.scalars().all())


async def create_message(db: AsyncSession, **fields) -> CancellationMessage:
    message = CancellationMessage(**fields)
    db.add(message)
    await db.flush()
    return message
