"""Notification schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    body: str
    type: str
    template: str
    meta: dict[str, Any] | None = None
    unread: bool
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True
