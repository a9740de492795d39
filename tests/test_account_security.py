import pyotp
import pytest

from nolsaf_backend.modules.auth import totp_service
from nolsaf_backend.modules.auth.login_attempts import LoginAttemptTracker
from nolsaf_backend.modules.auth.password_service import (
    hash_password,
    matches_any,
    validate_password_strength,
    verify_password,
)
from nolsaf_backend.modules.auth.session_policy import (
    MAX_ROLE_SESSION_MINUTES,
    get_password_min_length,
    get_role_session_max_minutes,
    get_session_policy,
    invalidate_session_policy_cache,
    role_setting_key,
)
from nolsaf_backend.modules.auth import crud as auth_crud

# ----- Passwords -----


def test_strong_password_passes():
    assert validate_password_strength("Str0ng!Passw0rd", "CUSTOMER") == (True, [])


@pytest.mark.parametrize(
    "password,expected",
    [
        ("Sh0rt!pw", "at least 10 characters"),
        ("alllowercase1!", "uppercase"),
        ("ALLUPPERCASE1!", "lowercase"),
        ("NoDigitsHere!!", "number"),
        ("NoSpecials123x", "special character"),
        ("Has Space123!x", "spaces"),
    ],
)
def test_weak_passwords_report_reasons(password, expected):
    valid, reasons = validate_password_strength(password, "CUSTOMER")
    assert not valid
    assert any(expected in r for r in reasons)


def test_privileged_roles_need_twelve_characters():
    password = "Abcdef1!xyz"  # 11 characters
    assert validate_password_strength(password, "CUSTOMER")[0]
    valid, reasons = validate_password_strength(password, "OWNER")
    assert not valid
    assert "at least 12 characters" in reasons[0]


def test_configured_minimum_raises_the_bar():
    valid, _ = validate_password_strength("Str0ng!Passw0rd", "CUSTOMER", min_length=20)
    assert not valid


def test_hash_and_verify():
    hashed = hash_password("Str0ng!Passw0rd")
    assert hashed != "Str0ng!Passw0rd"
    assert verify_password("Str0ng!Passw0rd", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", None)
    assert not verify_password("anything", "not-a-hash")
    assert matches_any("Str0ng!Passw0rd", ["junk", hashed])


# ----- TOTP and backup codes -----


def test_totp_secret_round_trips_through_encryption():
    secret = totp_service.generate_totp_secret()
    stored = totp_service.encrypt_secret(secret)
    assert stored != secret
    assert totp_service.decrypt_secret(stored) == secret


def test_decrypting_garbage_raises_value_error():
    with pytest.raises(ValueError):
        totp_service.decrypt_secret("not-a-fernet-token")


def test_verify_totp_accepts_current_code_with_spaces():
    secret = totp_service.generate_totp_secret()
    code = pyotp.TOTP(secret).now()
    assert totp_service.verify_totp(secret, f"{code[:3]} {code[3:]}")
    assert not totp_service.verify_totp(secret, "abcdef")


def test_provisioning_uri_names_issuer():
    uri = totp_service.provisioning_uri("JBSWY3DPEHPK3PXP", "guest@nolsaf.com")
    assert uri.startswith("otpauth://totp/")
    assert "issuer=nolsaf" in uri


def test_backup_codes_are_single_use():
    codes = totp_service.generate_backup_codes()
    assert len(codes) == 10
    assert all(len(c) == 9 and c[4] == "-" for c in codes)

    hashes = [totp_service.hash_backup_code(c) for c in codes]
    remaining = totp_service.consume_backup_code(codes[0].lower().replace("-", ""), hashes)
    assert remaining is not None and len(remaining) == 9
    assert totp_service.consume_backup_code(codes[0], remaining) is None


def test_mask_secret():
    assert totp_service.mask_secret("ABCDEFGHIJKL") == "ABCD****IJKL"
    assert totp_service.mask_secret("SHORT") == "*****"


# ----- Login attempts -----


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_tracker_locks_after_max_attempts_and_unlocks_later():
    clock = FakeClock()
    tracker = LoginAttemptTracker(max_attempts=3, lockout_seconds=60, clock=clock)
    assert not tracker.record_failure("guest@nolsaf.com", "10.0.0.1")
    assert not tracker.record_failure("Guest@nolsaf.com", "10.0.0.2")
    assert tracker.record_failure("guest@nolsaf.com", "10.0.0.3")

    assert tracker.locked_for("guest@nolsaf.com", None) == 60
    assert tracker.locked_for("other@nolsaf.com", "10.0.0.1") == 0

    clock.now += 61
    assert tracker.locked_for("guest@nolsaf.com", None) == 0


def test_tracker_reset_clears_counters():
    tracker = LoginAttemptTracker(max_attempts=2, lockout_seconds=60, clock=FakeClock())
    tracker.record_failure("guest@nolsaf.com", "10.0.0.1")
    tracker.reset("guest@nolsaf.com", "10.0.0.1")
    assert not tracker.record_failure("guest@nolsaf.com", "10.0.0.1")


# ----- Session policy -----


async def test_session_policy_defaults(db):
    policy = await get_session_policy(db)
    assert policy.idle_minutes == 30
    assert policy.max_minutes == 24 * 60
    assert await get_password_min_length(db) == 10


async def test_session_policy_reads_settings_and_caps_role_lifetime(db):
    await auth_crud.upsert_setting(db, "session_max_minutes", "120")
    await auth_crud.upsert_setting(db, role_setting_key("DRIVER"), "999999")
    await auth_crud.upsert_setting(db, "session_idle_minutes", "not-a-number")
    await db.commit()
    invalidate_session_policy_cache()

    policy = await get_session_policy(db)
    assert policy.max_minutes == 120
    assert policy.idle_minutes == 30
    assert await get_role_session_max_minutes(db, "CUSTOMER") == 120
    assert await get_role_session_max_minutes(db, "DRIVER") == MAX_ROLE_SESSION_MINUTES


def test_role_setting_key():
    assert role_setting_key("OWNER") == "session_max_minutes_owner"
