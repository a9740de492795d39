"""Notification inbox routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..auth.dependencies import CurrentUser
from ..commons import BaseResponse, PaginatedResponse, page_offset
from . import services
from .schemas import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=BaseResponse[PaginatedResponse[NotificationResponse]])
async def list_notifications(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    unread: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """List the caller's notifications (admins also see admin broadcasts)."""
    items, total = await services.list_notifications(
        db, current_user, unread, page_offset(page, page_size), page_size
    )
    return BaseResponse(
        success=True,
        data=PaginatedResponse.from_items(
            items=[NotificationResponse.model_validate(n) for n in items],
            total=total,
            page=page,
            page_size=page_size,
        ),
    )


@router.post("/read-all", response_model=BaseResponse[None])
async def mark_all_read(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    count = await services.mark_all_read(db, current_user)
    return BaseResponse(success=True, message=f"{count} notification(s) marked read")


@router.post("/{notification_id}/read", response_model=BaseResponse[NotificationResponse])
async def mark_read(
    notification_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    notification = await services.mark_read(db, current_user, notification_id)
    return BaseResponse(
        success=True, data=NotificationResponse.model_validate(notification)
    )
