"""Authentication, account security and admin settings routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ..commons import BaseResponse
from . import services
from .dependencies import AdminUser, CurrentUser, get_client_info
from .schemas import (
    BackupCodesResponse,
    ChangePasswordRequest,
    LoginRequest,
    PasskeyLoginOptionsRequest,
    PasskeyLoginOptionsResponse,
    PasskeyLoginVerifyRequest,
    PasskeyRegisterVerifyRequest,
    PasskeyResponse,
    RefreshTokenRequest,
    RegisterRequest,
    SessionResponse,
    SystemSettingResponse,
    SystemSettingUpdate,
    TokenResponse,
    TwoFactorCodeRequest,
    TwoFactorSetupResponse,
    UserResponse,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
account_router = APIRouter(prefix="/account", tags=["Account"])
admin_settings_router = APIRouter(prefix="/admin/settings", tags=["Admin Settings"])


# ----- Authentication -----


@router.post(
    "/register",
    response_model=BaseResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    data: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a customer, owner or driver account."""
    user = await services.register_user(db, data)
    return BaseResponse(
        success=True,
        message="Account created successfully",
        data=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=BaseResponse[TokenResponse])
async def login(
    request: Request,
    login_data: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Password sign-in; when 2FA is on, the TOTP or a backup code must come along."""
    user_agent, ip_address = get_client_info(request)

    user, tokens = await services.authenticate_user(
        db=db,
        email=login_data.email,
        password=login_data.password,
        totp_code=login_data.totp_code,
        remember_me=login_data.remember_me,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    return BaseResponse(
        success=True,
        message=f"Welcome back, {user.full_name}!",
        data=tokens,
    )


@router.post("/refresh", response_model=BaseResponse[TokenResponse])
async def refresh_token(
    request: Request,
    refresh_data: RefreshTokenRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Trade a live refresh token for a new access token, subject to the session policy."""
    user_agent, ip_address = get_client_info(request)

    tokens = await services.refresh_access_token(
        db=db,
        refresh_token=refresh_data.refresh_token,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    return BaseResponse(
        success=True,
        message="Session extended",
        data=tokens,
    )


@router.post("/logout", response_model=BaseResponse[None])
async def logout(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Sign out everywhere."""
    count = await services.logout_user(db, current_user.id)
    return BaseResponse(
        success=True,
        message=f"Signed out of {count} session(s)",
    )


@router.get("/me", response_model=BaseResponse[UserResponse])
async def get_current_user_info(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Profile of the caller."""
    user = await services.get_profile(db, current_user.id)
    return BaseResponse(success=True, data=UserResponse.model_validate(user))


@router.post(
    "/passkeys/login/options", response_model=BaseResponse[PasskeyLoginOptionsResponse]
)
async def passkey_login_options(
    data: PasskeyLoginOptionsRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Start passwordless sign-in."""
    challenge_id, options = await services.begin_passkey_login(db, data.email)
    return BaseResponse(
        success=True,
        data=PasskeyLoginOptionsResponse(challenge_id=challenge_id, options=options),
    )


@router.post("/passkeys/login/verify", response_model=BaseResponse[TokenResponse])
async def passkey_login_verify(
    request: Request,
    data: PasskeyLoginVerifyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Finish passwordless sign-in and issue tokens."""
    user_agent, ip_address = get_client_info(request)
    user, tokens = await services.finish_passkey_login(
        db,
        challenge_id=data.challenge_id,
        credential=data.credential,
        remember_me=data.remember_me,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return BaseResponse(
        success=True, message=f"Welcome back, {user.full_name}!", data=tokens
    )


# ----- Account: Password & Sessions -----


@account_router.post("/password", response_model=BaseResponse[None])
async def change_password(
    current_user: CurrentUser,
    password_data: ChangePasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Set a new password; it may not repeat a recent one and all sessions end."""
    await services.change_password(
        db=db,
        user_id=current_user.id,
        current_password=password_data.current_password,
        new_password=password_data.new_password,
    )
    return BaseResponse(
        success=True,
        message="Password updated; sign in again on your devices",
    )


@account_router.get("/sessions", response_model=BaseResponse[list[SessionResponse]])
async def list_sessions(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List active login sessions."""
    sessions = await services.list_sessions(db, current_user.id)
    return BaseResponse(
        success=True, data=[SessionResponse.model_validate(s) for s in sessions]
    )


@account_router.delete("/sessions/{session_id}", response_model=BaseResponse[None])
async def revoke_session(
    session_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Sign out a single session."""
    await services.revoke_session(db, current_user.id, session_id)
    return BaseResponse(success=True, message="Session revoked")


# ----- Account: Two-factor -----


@account_router.post("/2fa/setup", response_model=BaseResponse[TwoFactorSetupResponse])
async def setup_two_factor(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Start TOTP enrolment."""
    setup = await services.setup_two_factor(db, current_user.id)
    return BaseResponse(success=True, data=setup)


@account_router.post("/2fa/verify", response_model=BaseResponse[BackupCodesResponse])
async def verify_two_factor(
    data: TwoFactorCodeRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Confirm TOTP enrolment. Backup codes are only shown in this response."""
    codes = await services.enable_two_factor(db, current_user.id, data.code)
    return BaseResponse(
        success=True,
        message="Two-factor authentication enabled",
        data=BackupCodesResponse(backup_codes=codes),
    )


@account_router.post("/2fa/disable", response_model=BaseResponse[None])
async def disable_two_factor(
    data: TwoFactorCodeRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Turn off 2FA with a TOTP or backup code."""
    await services.disable_two_factor(db, current_user.id, data.code)
    return BaseResponse(success=True, message="Two-factor authentication disabled")


@account_router.post(
    "/2fa/backup-codes", response_model=BaseResponse[BackupCodesResponse]
)
async def regenerate_backup_codes(
    data: TwoFactorCodeRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Replace all backup codes."""
    codes = await services.regenerate_backup_codes(db, current_user.id, data.code)
    return BaseResponse(success=True, data=BackupCodesResponse(backup_codes=codes))


# ----- Account: Passkeys -----


@account_router.post(
    "/passkeys/register/options", response_model=BaseResponse[dict[str, Any]]
)
async def passkey_register_options(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Start passkey registration."""
    options = await services.begin_passkey_registration(db, current_user.id)
    return BaseResponse(success=True, data=options)


@account_router.post(
    "/passkeys/register/verify",
    response_model=BaseResponse[PasskeyResponse],
    status_code=status.HTTP_201_CREATED,
)
async def passkey_register_verify(
    data: PasskeyRegisterVerifyRequest,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Finish passkey registration."""
    passkey = await services.finish_passkey_registration(
        db, current_user.id, data.credential, data.name
    )
    return BaseResponse(
        success=True,
        message="Passkey registered",
        data=PasskeyResponse.model_validate(passkey),
    )


@account_router.get("/passkeys", response_model=BaseResponse[list[PasskeyResponse]])
async def list_passkeys(
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    passkeys = await services.list_passkeys(db, current_user.id)
    return BaseResponse(
        success=True, data=[PasskeyResponse.model_validate(p) for p in passkeys]
    )


@account_router.delete("/passkeys/{passkey_id}", response_model=BaseResponse[None])
async def delete_passkey(
    passkey_id: int,
    current_user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await services.delete_passkey(db, current_user.id, passkey_id)
    return BaseResponse(success=True, message="Passkey removed")


# ----- Admin: System Settings -----


@admin_settings_router.get("", response_model=BaseResponse[list[SystemSettingResponse]])
async def list_settings(
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List system settings."""
    items = await services.list_system_settings(db)
    return BaseResponse(
        success=True, data=[SystemSettingResponse.model_validate(s) for s in items]
    )


@admin_settings_router.put("/{key}", response_model=BaseResponse[SystemSettingResponse])
async def update_setting(
    key: str,
    data: SystemSettingUpdate,
    current_user: AdminUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create or update a system setting."""
    setting = await services.update_system_setting(db, key, data.value, current_user.id)
    return BaseResponse(
        success=True,
        message="Setting saved",
        data=SystemSettingResponse.model_validate(setting),
    )
