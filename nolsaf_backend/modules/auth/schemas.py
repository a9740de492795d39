"""Authentication and account schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import RoleSlug

SELF_SERVICE_ROLES = {RoleSlug.CUSTOMER, RoleSlug.OWNER, RoleSlug.DRIVER}


# ----- User Schemas -----


class UserResponse(BaseModel):
    """Schema for user response."""

    id: int
    email: EmailStr
    phone: str | None = None
    full_name: str
    role: RoleSlug
    is_active: bool
    two_factor_enabled: bool
    last_login: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class RegisterRequest(BaseModel):
    """Schema for self-service registration."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=160)
    phone: str | None = Field(None, max_length=32)
    role: RoleSlug = RoleSlug.CUSTOMER

    @field_validator("role")
    @classmethod
    def role_must_be_self_service(cls, value: RoleSlug) -> RoleSlug:
        if value not in SELF_SERVICE_ROLES:
            raise ValueError("Role cannot be chosen at registration")
        return value


# ----- Auth Schemas -----


class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str
    totp_code: str | None = Field(None, max_length=20)
    remember_me: bool = False


class TokenResponse(BaseModel):
    """Schema for token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request."""

    refresh_token: str


class ChangePasswordRequest(BaseModel):
    """Schema for password change request."""

    current_password: str
    new_password: str = Field(..., min_length=1, max_length=128)


class SessionResponse(BaseModel):
    """An active login session (refresh token)."""

    id: int
    created_at: datetime
    expires_at: datetime
    user_agent: str | None = None
    ip_address: str | None = None

    class Config:
        from_attributes = True


# ----- Two-factor Schemas -----


class TwoFactorSetupResponse(BaseModel):
    otpauth_uri: str
    secret_masked: str


class TwoFactorCodeRequest(BaseModel):
    """A TOTP code, or a backup code where accepted."""

    code: str = Field(..., min_length=6, max_length=20)


class BackupCodesResponse(BaseModel):
    backup_codes: list[str]


# ----- Passkey Schemas -----


class PasskeyResponse(BaseModel):
    id: int
    name: str | None = None
    transports: list[str] | None = None
    created_at: datetime
    last_used_at: datetime | None = None

    class Config:
        from_attributes = True


class PasskeyRegisterVerifyRequest(BaseModel):
    credential: dict[str, Any]
    name: str | None = Field(None, max_length=120)


class PasskeyLoginOptionsRequest(BaseModel):
    email: EmailStr | None = None


class PasskeyLoginOptionsResponse(BaseModel):
    challenge_id: str
    options: dict[str, Any]


class PasskeyLoginVerifyRequest(BaseModel):
    challenge_id: str = Field(..., min_length=1, max_length=64)
    credential: dict[str, Any]
    remember_me: bool = False


# ----- System Settings Schemas -----


class SystemSettingResponse(BaseModel):
    key: str
    value: str
    updated_at: datetime

    class Config:
        from_attributes = True


class SystemSettingUpdate(BaseModel):
    value: str = Field(..., min_length=1, max_length=500)


# ----- Request Context -----


class AuthenticatedUser(BaseModel):
    """Authenticated user context for request handling."""

    id: int
    email: str
    role: RoleSlug

    @property
    def is_admin(self) -> bool:
        return self.role == RoleSlug.ADMIN
