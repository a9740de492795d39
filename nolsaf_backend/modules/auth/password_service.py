"""Password hashing and strength policy."""

import re

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from .models import RoleSlug

DEFAULT_MIN_LENGTH = 10
PRIVILEGED_MIN_LENGTH = 12
PASSWORD_HISTORY_DEPTH = 5

_PRIVILEGED_ROLES = {RoleSlug.ADMIN.value, RoleSlug.OWNER.value}

_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password with argon2id."""
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash. Never raises."""
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def validate_password_strength(
    password: str,
    role: str | RoleSlug | None = None,
    min_length: int | None = None,
) -> tuple[bool, list[str]]:
    """Validate a password against the strength policy.

    Admins and owners always need at least 12 characters, regardless of the
    configured minimum.

    Returns:
        Tuple of (is_valid, reasons)
    """
    role_value = role.value if isinstance(role, RoleSlug) else role
    required = min_length or DEFAULT_MIN_LENGTH
    if role_value in _PRIVILEGED_ROLES:
        required = max(required, PRIVILEGED_MIN_LENGTH)

    reasons = []
    if len(password) < required:
        reasons.append(f"Password must be at least {required} characters long")
    if not re.search(r"[A-Z]", password):
        reasons.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        reasons.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        reasons.append("Password must contain at least one number")
    if not re.search(r"[^A-Za-z0-9\s]", password):
        reasons.append("Password must contain at least one special character")
    if re.search(r"\s", password):
        reasons.append("Password must not contain spaces")

    return not reasons, reasons


def matches_any(password: str, hashes: list[str]) -> bool:
    """True if the password verifies against any of the given hashes."""
    return any(verify_password(password, h) for h in hashes)
