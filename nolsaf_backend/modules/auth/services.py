"""Authentication and account security business logic."""

from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.exceptions import (
    AuthenticationError,
    NotFoundError,
    ResourceAlreadyExistsError,
    ValidationError,
)
from ...core.logging import get_logger
from ...core.utils import utc_now
from . import crud, passkey_service, totp_service
from .jwt_service import create_access_token, create_refresh_token, hash_refresh_token
from .login_attempts import login_tracker
from .models import Passkey, RefreshToken, RoleSlug, SystemSetting, User
from .password_service import (
    PASSWORD_HISTORY_DEPTH,
    hash_password,
    matches_any,
    validate_password_strength,
    verify_password,
)
from .schemas import RegisterRequest, TokenResponse, TwoFactorSetupResponse
from .session_policy import (
    SETTING_IDLE_MINUTES,
    SETTING_MAX_MINUTES,
    SETTING_PASSWORD_MIN_LENGTH,
    ROLE_MAX_MINUTES_PREFIX,
    get_password_min_length,
    get_role_session_max_minutes,
    invalidate_session_policy_cache,
)

logger = get_logger(__name__)

INTEGER_SETTINGS = {
    SETTING_IDLE_MINUTES,
    SETTING_MAX_MINUTES,
    SETTING_PASSWORD_MIN_LENGTH,
}


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def _issue_tokens(
    db: AsyncSession,
    user: User,
    remember_me: bool,
    user_agent: str | None,
    ip_address: str | None,
) -> TokenResponse:
    """Create an access token and a refresh-token session for the user.

    Both live for the role's maximum session length; "remember me" stretches
    only the refresh token.
    """
    access_minutes = await get_role_session_max_minutes(db, user.role)

    access_token = create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        expires_minutes=access_minutes,
    )
    refresh_token, refresh_expires = create_refresh_token(
        lifetime_minutes=access_minutes, remember_me=remember_me
    )
    await crud.create_refresh_token(
        db=db,
        user=user,
        token=refresh_token,
        expires_at=refresh_expires,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=access_minutes * 60,
    )


async def _check_password_policy(
    db: AsyncSession, password: str, role: str, user: User | None = None
) -> None:
    """Raise ValidationError if the password is weak or recently used."""
    min_length = await get_password_min_length(db)
    valid, reasons = validate_password_strength(password, role, min_length)
    if not valid:
        raise ValidationError(
            "Password does not meet requirements",
            field="password",
            data={"reasons": reasons},
        )

    if user is not None:
        previous = [user.password_hash]
        previous += await crud.get_recent_password_hashes(
            db, user.id, PASSWORD_HISTORY_DEPTH
        )
        if matches_any(password, previous):
            raise ValidationError(
                f"Password was used recently. Choose one you have not used in "
                f"your last {PASSWORD_HISTORY_DEPTH} changes.",
                field="password",
            )


def _verify_second_factor(user: User, code: str) -> bool:
    """Check a TOTP code, falling back to a single-use backup code."""
    if user.totp_secret:
        try:
            secret = totp_service.decrypt_secret(user.totp_secret)
        except ValueError:
            logger.error(f"TOTP secret for user {user.id} cannot be decrypted")
            secret = None
        if secret and totp_service.verify_totp(secret, code):
            return True

    remaining = totp_service.consume_backup_code(code, user.backup_code_hashes)
    if remaining is None:
        return False
    user.backup_code_hashes = remaining
    logger.info(f"Backup code used by user {user.id}, {len(remaining)} left")
    return True


# ----- Registration & Login -----


async def register_user(db: AsyncSession, data: RegisterRequest) -> User:
    """Create a customer, owner or driver account.

    Raises:
        ResourceAlreadyExistsError: If the email is taken
        ValidationError: If the password is too weak
    """
    if await crud.get_user_by_email(db, data.email):
        raise ResourceAlreadyExistsError("User", data.email)

    await _check_password_policy(db, data.password, data.role.value)

    user = await crud.create_user(
        db,
        email=data.email,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        role=data.role.value,
        phone=data.phone,
    )
    await db.commit()
    logger.info(f"Registered user {user.id} with role {user.role}")
    return user


async def authenticate_user(
    db: AsyncSession,
    email: str,
    password: str,
    totp_code: str | None = None,
    remember_me: bool = False,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, TokenResponse]:
    """Authenticate user and return tokens.

    Args:
        db: Database session
        email: User's email
        password: User's password
        totp_code: TOTP or backup code, required when 2FA is enabled
        remember_me: Whether to extend refresh token expiry
        user_agent: Client user agent string
        ip_address: Client IP address

    Returns:
        Tuple of (User, TokenResponse)

    Raises:
        AuthenticationError: If authentication fails; when only the second
            factor is missing, ``data`` is ``{"requires_2fa": True}``
    """
    locked_for = login_tracker.locked_for(email, ip_address)
    if locked_for > 0:
        raise AuthenticationError(
            f"Too many failed attempts. Try again in {int(locked_for // 60) + 1} minutes."
        )

    user = await crud.get_user_by_email(db, email)
    if not user:
        login_tracker.record_failure(email, ip_address)
        raise AuthenticationError("Invalid email or password")

    if user.is_locked:
        raise AuthenticationError("Account is locked. Please try again later.")
    if user.locked_until is not None:
        await crud.clear_lockout(db, user)

    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    if not verify_password(password, user.password_hash):
        login_tracker.record_failure(email, ip_address)
        await crud.increment_failed_login(db, user)

        if user.failed_login_attempts >= settings.max_login_attempts:
            lock_until = utc_now() + timedelta(minutes=settings.lockout_duration_minutes)
            await crud.lock_user(db, user, lock_until)
            await db.commit()
            logger.warning(f"User {user.id} locked after repeated failed logins")
            raise AuthenticationError(
                f"Account locked due to too many failed attempts. "
                f"Try again in {settings.lockout_duration_minutes} minutes."
            )

        await db.commit()
        raise AuthenticationError("Invalid email or password")

    if user.two_factor_enabled:
        if not totp_code:
            raise AuthenticationError(
                "Two-factor authentication code required",
                data={"requires_2fa": True},
            )
        if not _verify_second_factor(user, totp_code):
            login_tracker.record_failure(email, ip_address)
            raise AuthenticationError(
                "Invalid two-factor authentication code",
                data={"requires_2fa": True},
            )

    login_tracker.reset(email, ip_address)
    await crud.update_user_last_login(db, user)
    tokens = await _issue_tokens(db, user, remember_me, user_agent, ip_address)
    await db.commit()

    return user, tokens


async def refresh_access_token(
    db: AsyncSession,
    refresh_token: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> TokenResponse:
    """Rotate a refresh token and issue a fresh access token.

    Raises:
        AuthenticationError: If refresh token is invalid or expired
    """
    stored_token = await crud.get_refresh_token_by_hash(
        db, hash_refresh_token(refresh_token)
    )

    if not stored_token:
        raise AuthenticationError("Invalid refresh token")

    if stored_token.is_revoked:
        raise AuthenticationError("Refresh token has been revoked")

    if stored_token.is_expired:
        raise AuthenticationError("Refresh token has expired")

    user = await crud.get_user_by_id(db, stored_token.user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    await crud.revoke_refresh_token(db, stored_token)
    tokens = await _issue_tokens(db, user, False, user_agent, ip_address)
    await db.commit()
    return tokens


async def logout_user(db: AsyncSession, user_id: int) -> int:
    """Logout user by revoking all their refresh tokens.

    Returns:
        Number of tokens revoked
    """
    count = await crud.revoke_all_user_tokens(db, user_id)
    await db.commit()
    return count


async def get_profile(db: AsyncSession, user_id: int) -> User:
    return await _get_user_or_404(db, user_id)


# ----- Password & Sessions -----


async def change_password(
    db: AsyncSession,
    user_id: int,
    current_password: str,
    new_password: str,
) -> None:
    """Change user's password and end every session.

    Raises:
        NotFoundError: If user not found
        ValidationError: If the current password is wrong, or the new one is
            weak or recently used
    """
    user = await _get_user_or_404(db, user_id)

    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    await _check_password_policy(db, new_password, user.role, user)

    await crud.update_user_password(db, user, hash_password(new_password))
    await crud.revoke_all_user_tokens(db, user_id)
    await db.commit()
    logger.info(f"Password changed for user {user_id}")


async def list_sessions(db: AsyncSession, user_id: int) -> list[RefreshToken]:
    return await crud.get_active_refresh_tokens(db, user_id)


async def revoke_session(db: AsyncSession, user_id: int, session_id: int) -> None:
    token = await crud.get_refresh_token_for_user(db, session_id, user_id)
    if not token or token.is_revoked:
        raise NotFoundError("Session not found")
    await crud.revoke_refresh_token(db, token)
    await db.commit()


# ----- Two-factor Authentication -----


async def setup_two_factor(db: AsyncSession, user_id: int) -> TwoFactorSetupResponse:
    """Start TOTP enrolment. The secret stays pending until verified."""
    user = await _get_user_or_404(db, user_id)
    if user.two_factor_enabled:
        raise ValidationError("Two-factor authentication is already enabled")

    secret = totp_service.generate_totp_secret()
    user.totp_pending_secret = totp_service.encrypt_secret(secret)
    await db.commit()

    return TwoFactorSetupResponse(
        otpauth_uri=totp_service.provisioning_uri(secret, user.email),
        secret_masked=totp_service.mask_secret(secret),
    )


async def enable_two_factor(db: AsyncSession, user_id: int, code: str) -> list[str]:
    """Confirm TOTP enrolment and return fresh backup codes (shown once)."""
    user = await _get_user_or_404(db, user_id)
    if not user.totp_pending_secret:
        raise ValidationError("Two-factor setup has not been started")

    secret = totp_service.decrypt_secret(user.totp_pending_secret)
    if not totp_service.verify_totp(secret, code):
        raise ValidationError("Invalid verification code", field="code")

    backup_codes = totp_service.generate_backup_codes()
    user.totp_secret = user.totp_pending_secret
    user.totp_pending_secret = None
    user.two_factor_enabled = True
    user.backup_code_hashes = [totp_service.hash_backup_code(c) for c in backup_codes]
    await db.commit()
    logger.info(f"Two-factor authentication enabled for user {user_id}")
    return backup_codes


async def disable_two_factor(db: AsyncSession, user_id: int, code: str) -> None:
    user = await _get_user_or_404(db, user_id)
    if not user.two_factor_enabled:
        raise ValidationError("Two-factor authentication is not enabled")
    if not _verify_second_factor(user, code):
        raise ValidationError("Invalid verification code", field="code")

    user.two_factor_enabled = False
    user.totp_secret = None
    user.totp_pending_secret = None
    user.backup_code_hashes = None
    await db.commit()
    logger.info(f"Two-factor authentication disabled for user {user_id}")


async def regenerate_backup_codes(
    db: AsyncSession, user_id: int, code: str
) -> list[str]:
    user = await _get_user_or_404(db, user_id)
    if not user.two_factor_enabled or not user.totp_secret:
        raise ValidationError("Two-factor authentication is not enabled")
    if not totp_service.verify_totp(totp_service.decrypt_secret(user.totp_secret), code):
        raise ValidationError("Invalid verification code", field="code")

    backup_codes = totp_service.generate_backup_codes()
    user.backup_code_hashes = [totp_service.hash_backup_code(c) for c in backup_codes]
    await db.commit()
    return backup_codes


# ----- Passkeys -----


async def begin_passkey_registration(db: AsyncSession, user_id: int) -> dict[str, Any]:
    user = await _get_user_or_404(db, user_id)
    existing = await crud.get_passkeys_for_user(db, user_id)
    return passkey_service.registration_options(user, existing)


async def finish_passkey_registration(
    db: AsyncSession, user_id: int, credential: dict[str, Any], name: str | None
) -> Passkey:
    user = await _get_user_or_404(db, user_id)
    fields = passkey_service.verify_registration(user, credential)

    if await crud.get_passkey_by_credential_id(db, fields["credential_id"]):
        raise ResourceAlreadyExistsError("Passkey", fields["credential_id"])

    passkey = await crud.create_passkey(db, user_id, name=name, **fields)
    await db.commit()
    logger.info(f"Passkey {passkey.id} registered for user {user_id}")
    return passkey


async def list_passkeys(db: AsyncSession, user_id: int) -> list[Passkey]:
    return await crud.get_passkeys_for_user(db, user_id)


async def delete_passkey(db: AsyncSession, user_id: int, passkey_id: int) -> None:
    passkey = await crud.get_passkey_for_user(db, passkey_id, user_id)
    if not passkey:
        raise NotFoundError("Passkey not found")
    await crud.delete_passkey(db, passkey)
    await db.commit()


async def begin_passkey_login(
    db: AsyncSession, email: str | None = None
) -> tuple[str, dict[str, Any]]:
    """Start passkey sign-in, scoped to the user's passkeys when an email is given."""
    passkeys: list[Passkey] = []
    if email:
        user = await crud.get_user_by_email(db, email)
        if user:
            passkeys = await crud.get_passkeys_for_user(db, user.id)
    return passkey_service.authentication_options(passkeys)


async def finish_passkey_login(
    db: AsyncSession,
    challenge_id: str,
    credential: dict[str, Any],
    remember_me: bool = False,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, TokenResponse]:
    credential_id = passkey_service.credential_id_of(credential)
    passkey = await crud.get_passkey_by_credential_id(db, credential_id)
    if not passkey:
        raise AuthenticationError("Unknown passkey")

    new_sign_count = passkey_service.verify_authentication(
        challenge_id, credential, passkey
    )

    user = await crud.get_user_by_id(db, passkey.user_id)
    if not user or not user.is_active:
        raise AuthenticationError("Account is disabled")

    passkey.sign_count = new_sign_count
    passkey.last_used_at = utc_now()
    await crud.update_user_last_login(db, user)
    tokens = await _issue_tokens(db, user, remember_me, user_agent, ip_address)
    await db.commit()
    return user, tokens


# ----- System Settings -----


async def list_system_settings(db: AsyncSession) -> list[SystemSetting]:
    return await crud.get_all_settings(db)


async def update_system_setting(
    db: AsyncSession, key: str, value: str, admin_id: int
) -> SystemSetting:
    """Upsert a setting and drop the cached session policy.

    Raises:
        ValidationError: If a numeric setting gets a non-positive-integer value
    """
    key = key.strip().lower()
    value = value.strip()
    if key in INTEGER_SETTINGS or key.startswith(ROLE_MAX_MINUTES_PREFIX):
        if not value.isdigit() or int(value) <= 0:
            raise ValidationError("Must be a positive integer", field=key, value=value)

    setting = await crud.upsert_setting(db, key, value, updated_by=admin_id)
    await db.commit()
    invalidate_session_policy_cache()
    logger.info(f"System setting {key} updated by admin {admin_id}")
    return setting


async def create_initial_admin(
    db: AsyncSession, email: str, password: str, full_name: str
) -> User | None:
    """Create the first admin user if no admin exists yet.

    Returns:
        The created admin, or None if one already exists
    """
    if await crud.get_users_by_role(db, RoleSlug.ADMIN.value):
        return None

    valid, reasons = validate_password_strength(password, RoleSlug.ADMIN)
    if not valid:
        raise ValidationError("Initial admin password is too weak", data={"reasons": reasons})

    user = await crud.create_user(
        db,
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role=RoleSlug.ADMIN.value,
    )
    await db.commit()
    logger.info(f"Created initial admin user {user.id}")
    return user
