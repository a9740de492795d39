"""CRUD operations for notifications."""

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.utils import utc_now
from .models import Notification


def _visible_to(user_id: int, include_admin: bool):
    conditions = [Notification.user_id == user_id, Notification.owner_id == user_id]
    if include_admin:
        conditions.append(
            and_(Notification.user_id.is_(None), Notification.owner_id.is_(None))
        )
    return or_(*conditions)


async def get_notifications_for(
    db: AsyncSession,
    user_id: int,
    include_admin: bool = False,
    unread: bool | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    """Get notifications addressed to a user, newest first."""
    query = select(Notification).where(_visible_to(user_id, include_admin))
    if unread is True:
        query = query.where(Notification.read_at.is_(None))
    elif unread is False:
        query = query.where(Notification.read_at.is_not(None))

    count_result = await db.execute(
        select(func.count()).select_from(query.subquery())
    )
    total = count_result.scalar() or 0

    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_visible_notification(
    db: AsyncSession, notification_id: int, user_id: int, include_admin: bool
) -> Notification | None:
    result = await db.execute(
        select(Notification).where(
            and_(
                Notification.id == notification_id,
                _visible_to(user_id, include_admin),
            )
        )
    )
    return result.scalar_one_or_none()


async def mark_all_read(db: AsyncSession, user_id: int, include_admin: bool) -> int:
    result = await db.execute(
        update(Notification)
        .where(
            and_(_visible_to(user_id, include_admin), Notification.read_at.is_(None))
        )
        .values(read_at=utc_now())
    )
    return result.rowcount or 0
