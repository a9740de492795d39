"""Authentication and account security module."""

from .dependencies import (
    AdminUser,
    CurrentUser,
    CustomerUser,
    DriverUser,
    OwnerUser,
    get_current_user,
    require_role,
)
from .models import Passkey, PasswordHistory, RefreshToken, RoleSlug, SystemSetting, User
from .routers import account_router, admin_settings_router, router
from .schemas import AuthenticatedUser

__all__ = [
    # Models
    "User",
    "RoleSlug",
    "RefreshToken",
    "PasswordHistory",
    "Passkey",
    "SystemSetting",
    # Routers
    "router",
    "account_router",
    "admin_settings_router",
    # Dependencies
    "get_current_user",
    "require_role",
    "CurrentUser",
    "AdminUser",
    "OwnerUser",
    "DriverUser",
    "CustomerUser",
    # Schemas
    "AuthenticatedUser",
]
