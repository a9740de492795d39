"""Best-effort notification delivery.

Notifications are written inside a SAVEPOINT so a failure never poisons the
caller's transaction; failures are logged and swallowed.
"""

import json
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import NotFoundError
from ...core.logging import get_logger
from ...core.utils import utc_now
from ..auth.schemas import AuthenticatedUser
from . import crud
from .models import Notification
from .templates import notification_type, render

logger = get_logger(__name__)


def _json_safe(data: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


async def _notify(
    db: AsyncSession,
    template: str,
    data: dict[str, Any],
    user_id: int | None = None,
    owner_id: int | None = None,
) -> Notification | None:
    try:
        title, body = render(template, data)
        async with db.begin_nested():
            notification = Notification(
                user_id=user_id,
                owner_id=owner_id,
                title=title[:255],
                body=body,
                type=notification_type(template),
                template=template,
                meta=_json_safe(data),
            )
            db.add(notification)
            await db.flush()
        return notification
    except Exception as e:
        logger.warning(
            f"Notification '{template}' not delivered: {e}",
            extra={"user_id": user_id, "owner_id": owner_id},
        )
        return None


async def notify_admins(
    db: AsyncSession, template: str, data: dict[str, Any]
) -> Notification | None:
    """Broadcast to every admin (no user or owner on the row)."""
    return await _notify(db, template, data)


async def notify_owner(
    db: AsyncSession, owner_id: int, template: str, data: dict[str, Any]
) -> Notification | None:
    return await _notify(db, template, data, owner_id=owner_id)


async def notify_user(
    db: AsyncSession, user_id: int, template: str, data: dict[str, Any]
) -> Notification | None:
    return await _notify(db, template, data, user_id=user_id)


async def list_notifications(
    db: AsyncSession,
    current_user: AuthenticatedUser,
    unread: bool | None,
    skip: int,
    limit: int,
) -> tuple[list[Notification], int]:
    return await crud.get_notifications_for(
        db,
        user_id=current_user.id,
        include_admin=current_user.is_admin,
        unread=unread,
        skip=skip,
        limit=limit,
    )


async def mark_read(
    db: AsyncSession, current_user: AuthenticatedUser, notification_id: int
) -> Notification:
    notification = await crud.get_visible_notification(
        db, notification_id, current_user.id, current_user.is_admin
    )
    if not notification:
        raise NotFoundError(f"Notification with ID {notification_id} not found")
    if notification.read_at is None:
        notification.read_at = utc_now()
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, current_user: AuthenticatedUser) -> int:
    count = await crud.mark_all_read(db, current_user.id, current_user.is_admin)
    await db.commit()
    return count
