"""Account, session, passkey and settings persistence."""

from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.utils import utc_now
from .jwt_service import hash_refresh_token
from .models import Passkey, PasswordHistory, RefreshToken, SystemSetting, User

# Accounts


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by email (case-insensitive, stored lower-case)."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_users_by_role(db: AsyncSession, role: str) -> list[User]:
    result = await db.execute(
        select(User).where(and_(User.role == role, User.is_active.is_(True)))
    )
    return list(result.scalars().all())


async def create_user(
    db: AsyncSession,
    email: str,
    password_hash: str,
    full_name: str,
    role: str,
    phone: str | None = None,
) -> User:
    """Insert an active account with no failed attempts and 2FA off."""
    user = User(
        email=email.strip().lower(),
        password_hash=password_hash,
        full_name=full_name.strip(),
        phone=phone,
        role=role,
        is_active=True,
        failed_login_attempts=0,
        two_factor_enabled=False,
        password_changed_at=utc_now(),
    )
    db.add(user)
    await db.flush()
    return user


async def update_user_last_login(db: AsyncSession, user: User) -> None:
    """Stamp a successful sign-in and clear the lockout counters."""
    user.last_login = utc_now()
    user.failed_login_attempts = 0
    user.locked_until = None
    await db.flush()


async def increment_failed_login(db: AsyncSession, user: User) -> None:
    """Count one more bad password against the account."""
    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    await db.flush()


async def clear_lockout(db: AsyncSession, user: User) -> None:
    """Lift an expired lock and start the failure count over."""
    user.failed_login_attempts = 0
    user.locked_until = None
    await db.flush()


async def lock_user(db: AsyncSession, user: User, until: datetime) -> None:
    """Refuse sign-ins until ``until``."""
    user.locked_until = until
    await db.flush()


async def update_user_password(db: AsyncSession, user: User, password_hash: str) -> None:
    """Replace the password hash, keeping the old one in history."""
    db.add(PasswordHistory(user_id=user.id, password_hash=user.password_hash))
    user.password_hash = password_hash
    user.password_changed_at = utc_now()
    await db.flush()


# Password history


async def get_recent_password_hashes(
    db: AsyncSession, user_id: int, limit: int
) -> list[str]:
    result = await db.execute(
        select(PasswordHistory.password_hash)
        .where(PasswordHistory.user_id == user_id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# Sessions (refresh tokens)


async def create_refresh_token(
    db: AsyncSession,
    user: User,
    token: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> RefreshToken:
    """Persist a session; only the SHA-256 of ``token`` is stored."""
    refresh_token = RefreshToken(
        user_id=user.id,
        token_hash=hash_refresh_token(token),
        expires_at=expires_at,
        user_agent=user_agent[:500] if user_agent else None,
        ip_address=ip_address,
    )
    db.add(refresh_token)
    await db.flush()
    return refresh_token


async def get_refresh_token_by_hash(
    db: AsyncSession, token_hash: str
) -> RefreshToken | None:
    """Look up a session by token hash, revoked or not."""
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == token_hash)
    )
    return result.scalar_one_or_none()


async def get_active_refresh_tokens(
    db: AsyncSession, user_id: int
) -> list[RefreshToken]:
    result = await db.execute(
        select(RefreshToken)
        .where(
            and_(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
            )
        )
        .order_by(RefreshToken.created_at.desc())
    )
    return [t for t in result.scalars().all() if not t.is_expired]


async def get_refresh_token_for_user(
    db: AsyncSession, token_id: int, user_id: int
) -> RefreshToken | None:
    result = await db.execute(
        select(RefreshToken).where(
            and_(RefreshToken.id == token_id, RefreshToken.user_id == user_id)
        )
    )
    return result.scalar_one_or_none()


async def revoke_refresh_token(db: AsyncSession, token: RefreshToken) -> None:
    """End one session."""
    token.revoked_at = utc_now()
    await db.flush()


async def revoke_all_user_tokens(db: AsyncSession, user_id: int) -> int:
    """End every open session of a user and return how many were open."""
    result = await db.execute(
        select(RefreshToken).where(
            and_(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
            )
        )
    )
    tokens = result.scalars().all()
    now = utc_now()
    for token in tokens:
        token.revoked_at = now
    await db.flush()
    return len(tokens)


# Passkeys


async def get_passkeys_for_user(db: AsyncSession, user_id: int) -> list[Passkey]:
    result = await db.execute(
        select(Passkey).where(Passkey.user_id == user_id).order_by(Passkey.id)
    )
    return list(result.scalars().all())


async def get_passkey_by_credential_id(
    db: AsyncSession, credential_id: str
) -> Passkey | None:
    result = await db.execute(
        select(Passkey).where(Passkey.credential_id == credential_id)
    )
    return result.scalar_one_or_none()


async def get_passkey_for_user(
    db: AsyncSession, passkey_id: int, user_id: int
) -> Passkey | None:
    result = await db.execute(
        select(Passkey).where(and_(Passkey.id == passkey_id, Passkey.user_id == user_id))
    )
    return result.scalar_one_or_none()


async def create_passkey(db: AsyncSession, user_id: int, **fields) -> Passkey:
    passkey = Passkey(user_id=user_id, **fields)
    db.add(passkey)
    await db.flush()
    return passkey


async def delete_passkey(db: AsyncSession, passkey: Passkey) -> None:
    await db.delete(passkey)
    await db.flush()


# System settings


async def get_all_settings(db: AsyncSession) -> list[SystemSetting]:
    result = await db.execute(select(SystemSetting).order_by(SystemSetting.key))
    return list(result.scalars().all())


async def upsert_setting(
    db: AsyncSession, key: str, value: str, updated_by: int | None = None
) -> SystemSetting:
    setting = await db.get(SystemSetting, key)
    if setting is None:
        setting = SystemSetting(key=key, value=value, updated_by=updated_by)
        db.add(setting)
    else:
        setting.value = value
        setting.updated_by = updated_by
        setting.updated_at = utc_now()
    await db.flush()
    return setting
