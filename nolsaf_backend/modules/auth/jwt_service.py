"""Access and refresh tokens.

Access tokens are JWTs that live for the role's maximum session length
(``session_max_minutes_<role>``, else the global maximum). Refresh tokens
are opaque random strings; only their sha256 is stored, one row per session.
"""

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta

import jwt

from ...config import settings
from ...core.utils import utc_now

TOKEN_ISSUER = "nolsaf"
ACCESS_TOKEN_TYPE = "access"

# Tolerated clock drift between API nodes when checking exp/iat
CLOCK_SKEW = timedelta(seconds=30)


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    expires_minutes: int,
) -> str:
    now = utc_now()
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iss": TOKEN_ISSUER,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate an access token.

    Returns:
        The payload, or None if the token is malformed, expired, signed with
        another key, issued elsewhere or not an access token.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=TOKEN_ISSUER,
            leeway=CLOCK_SKEW,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.InvalidTokenError:
        return None
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    return payload


def create_refresh_token(
    lifetime_minutes: int, remember_me: bool = False
) -> tuple[str, datetime]:
    """New session secret and its expiry.

    ``lifetime_minutes`` is the role's maximum session length; "remember me"
    sessions use the configured number of days instead.
    """
    if remember_me:
        lifetime = timedelta(days=settings.refresh_token_remember_days)
    else:
        lifetime = timedelta(minutes=lifetime_minutes)
    return secrets.token_urlsafe(32), utc_now() + lifetime


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()
