"""TOTP two-factor authentication and backup codes."""

import base64
import hashlib
import secrets

import pyotp
from cryptography.fernet import Fernet, InvalidToken

from ...config import settings

BACKUP_CODE_COUNT = 10
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def _cipher() -> Fernet | None:
    if not settings.totp_encryption_key:
        return None
    key = hashlib.sha256(settings.totp_encryption_key.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key))


def generate_totp_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, account_name: str) -> str:
    """otpauth:// URI for authenticator apps."""
    return pyotp.TOTP(secret).provisioning_uri(
        name=account_name, issuer_name=settings.totp_issuer
    )


def verify_totp(secret: str, code: str, window: int = 1) -> bool:
    code = "".join((code or "").split())
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=window)


def encrypt_secret(secret: str) -> str:
    cipher = _cipher()
    if cipher is None:
        return secret
    return cipher.encrypt(secret.encode()).decode()


def decrypt_secret(stored: str) -> str:
    """Reverse ``encrypt_secret``.

    Raises:
        ValueError: If the stored value cannot be decrypted with the current key
    """
    cipher = _cipher()
    if cipher is None:
        return stored
    try:
        return cipher.decrypt(stored.encode()).decode()
    except InvalidToken as e:
        raise ValueError("Stored TOTP secret cannot be decrypted") from e


def mask_secret(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"


def _random_block(size: int = 4) -> str:
    return "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(size))


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> list[str]:
    """Backup codes in XXXX-XXXX form."""
    return [f"{_random_block()}-{_random_block()}" for _ in range(count)]


def normalize_backup_code(code: str) -> str:
    cleaned = "".join((code or "").split()).upper().replace("-", "")
    if len(cleaned) == 8:
        return f"{cleaned[:4]}-{cleaned[4:]}"
    return cleaned


def hash_backup_code(code: str) -> str:
    return hashlib.sha256(normalize_backup_code(code).encode()).hexdigest()


def consume_backup_code(code: str, hashes: list[str] | None) -> list[str] | None:
    """Return the remaining hashes if ``code`` matched one, else None."""
    if not hashes:
        return None
    digest = hash_backup_code(code)
    for stored in hashes:
        if secrets.compare_digest(stored, digest):
            return [h for h in hashes if h != stored]
    return None
