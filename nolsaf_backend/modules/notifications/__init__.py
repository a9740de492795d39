"""In-app notifications module."""

from .models import Notification
from .routers import router
from .services import notify_admins, notify_owner, notify_user

__all__ = [
    "Notification",
    "router",
    "notify_admins",
    "notify_owner",
    "notify_user",
]
