"""Session policy lookups backed by system settings.

Values are cached for a few minutes; a failing settings read falls back to
the configured defaults so authentication keeps working.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import settings
from ...core.logging import get_logger
from ...core.ttl_cache import TTLCache, register_cache
from .models import RoleSlug, SystemSetting
from .password_service import DEFAULT_MIN_LENGTH

logger = get_logger(__name__)

SETTING_IDLE_MINUTES = "session_idle_minutes"
SETTING_MAX_MINUTES = "session_max_minutes"
SETTING_PASSWORD_MIN_LENGTH = "password_min_length"
ROLE_MAX_MINUTES_PREFIX = "session_max_minutes_"

# Hard ceiling for any role-specific session lifetime (7 days)
MAX_ROLE_SESSION_MINUTES = 7 * 24 * 60

_CACHE_KEY = "system_settings"

_settings_cache: TTLCache[str, dict[str, str]] = register_cache(
    TTLCache("session_policy", ttl_seconds=settings.session_policy_cache_seconds)
)


@dataclass(frozen=True)
class SessionPolicy:
    idle_minutes: int
    max_minutes: int


def role_setting_key(role: str | RoleSlug) -> str:
    value = role.value if isinstance(role, RoleSlug) else role
    return f"{ROLE_MAX_MINUTES_PREFIX}{value.lower()}"


def _positive_int(values: dict[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if raw is None:
        return default
    try:
        parsed = int(str(raw).strip())
    except ValueError:
        logger.warning(f"Ignoring non-integer system setting {key}={raw!r}")
        return default
    return parsed if parsed > 0 else default


async def get_system_settings(db: AsyncSession) -> dict[str, str]:
    """All system settings as a dict, served from cache when fresh."""
    cached = _settings_cache.get(_CACHE_KEY)
    if cached is not None:
        return cached

    try:
        result = await db.execute(select(SystemSetting))
    except SQLAlchemyError as e:
        logger.warning(f"Falling back to default session policy: {e}")
        return {}

    values = {row.key: row.value for row in result.scalars().all()}
    _settings_cache.set(_CACHE_KEY, values)
    return values


def invalidate_session_policy_cache() -> None:
    _settings_cache.clear()


async def get_session_policy(db: AsyncSession) -> SessionPolicy:
    values = await get_system_settings(db)
    return SessionPolicy(
        idle_minutes=_positive_int(
            values, SETTING_IDLE_MINUTES, settings.session_idle_minutes
        ),
        max_minutes=_positive_int(
            values, SETTING_MAX_MINUTES, settings.session_max_minutes
        ),
    )


async def get_role_session_max_minutes(db: AsyncSession, role: str | RoleSlug) -> int:
    """Session lifetime for a role, capped at 7 days."""
    values = await get_system_settings(db)
    policy = await get_session_policy(db)
    minutes = _positive_int(values, role_setting_key(role), policy.max_minutes)
    return min(minutes, MAX_ROLE_SESSION_MINUTES)


async def get_password_min_length(db: AsyncSession) -> int:
    values = await get_system_settings(db)
    return _positive_int(values, SETTING_PASSWORD_MIN_LENGTH, DEFAULT_MIN_LENGTH)
