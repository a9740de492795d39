from datetime import timedelta

import pyotp
from sqlalchemy import select

from nolsaf_backend.config import settings
from nolsaf_backend.core.utils import utc_now
from nolsaf_backend.modules.auth import totp_service
from nolsaf_backend.modules.auth.jwt_service import decode_access_token
from nolsaf_backend.modules.auth.models import User
from nolsaf_backend.modules.auth.services import create_initial_admin

from .conftest import TEST_PASSWORD, auth_headers


async def _register(client, email="guest@nolsaf.com", role="CUSTOMER", password=TEST_PASSWORD):
    return await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "full_name": "Amina Guest", "role": role},
    )


async def _login(client, email="guest@nolsaf.com", password=TEST_PASSWORD, **extra):
    return await client.post(
        "/api/auth/login", json={"email": email, "password": password, **extra}
    )


async def test_register_login_and_profile(client):
    registered = await _register(client)
    assert registered.status_code == 201
    assert registered.json()["data"]["role"] == "CUSTOMER"

    login = await _login(client)
    assert login.status_code == 200
    tokens = login.json()["data"]
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] == 24 * 60 * 60
    claims = decode_access_token(tokens["access_token"])
    assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    me = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert me.json()["data"]["email"] == "guest@nolsaf.com"


async def test_duplicate_email_conflicts(client):
    await _register(client)
    again = await _register(client)
    assert again.status_code == 409


async def test_weak_password_is_rejected_with_reasons(client):
    response = await _register(client, password="weakpass")
    assert response.status_code == 400
    assert response.json()["data"]["reasons"]


async def test_owner_needs_longer_password(client):
    response = await _register(client, role="OWNER", password="Abcdef1!xyz")
    assert response.status_code == 400


async def test_admin_role_cannot_self_register(client):
    response = await _register(client, role="ADMIN")
    assert response.status_code == 400


async def test_wrong_password_and_lockout(client):
    await _register(client)
    for _ in range(4):
        failed = await _login(client, password="Wr0ng!Password")
        assert failed.status_code == 401
        assert failed.json()["message"] == "Invalid email or password"

    locked = await _login(client, password="Wr0ng!Password")
    assert locked.status_code == 401
    assert "locked" in locked.json()["message"].lower()

    # Even the right password is refused while locked
    refused = await _login(client)
    assert refused.status_code == 401


async def test_refresh_rotates_session_and_logout_revokes(client):
    await _register(client)
    tokens = (await _login(client)).json()["data"]

    refreshed = await client.post(
        "/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()["data"]

    reused = await client.post(
        "/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert reused.status_code == 401

    headers = {"Authorization": f"Bearer {new_tokens['access_token']}"}
    sessions = await client.get("/api/account/sessions", headers=headers)
    assert len(sessions.json()["data"]) == 1

    await client.post("/api/auth/logout", headers=headers)
    after = await client.post(
        "/api/auth/refresh", json={"refresh_token": new_tokens["refresh_token"]}
    )
    assert after.status_code == 401


async def test_change_password_rejects_reuse(client):
    await _register(client)
    tokens = (await _login(client)).json()["data"]
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    same = await client.post(
        "/api/account/password",
        json={"current_password": TEST_PASSWORD, "new_password": TEST_PASSWORD},
        headers=headers,
    )
    assert same.status_code == 400

    changed = await client.post(
        "/api/account/password",
        json={"current_password": TEST_PASSWORD, "new_password": "N3w!Passw0rdX"},
        headers=headers,
    )
    assert changed.status_code == 200
    assert (await _login(client, password="N3w!Passw0rdX")).status_code == 200


async def test_two_factor_enrolment_and_login(client, db):
    await _register(client)
    tokens = (await _login(client)).json()["data"]
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    setup = await client.post("/api/account/2fa/setup", headers=headers)
    assert setup.json()["data"]["otpauth_uri"].startswith("otpauth://")

    user = (await db.execute(select(User).where(User.email == "guest@nolsaf.com"))).scalar_one()
    secret = totp_service.decrypt_secret(user.totp_pending_secret)

    verified = await client.post(
        "/api/account/2fa/verify", json={"code": pyotp.TOTP(secret).now()}, headers=headers
    )
    assert verified.status_code == 200
    backup_codes = verified.json()["data"]["backup_codes"]
    assert len(backup_codes) == 10

    missing = await _login(client)
    assert missing.status_code == 401
    assert missing.json()["data"] == {"requires_2fa": True}

    with_totp = await _login(client, totp_code=pyotp.TOTP(secret).now())
    assert with_totp.status_code == 200

    with_backup = await _login(client, totp_code=backup_codes[0])
    assert with_backup.status_code == 200
    reused = await _login(client, totp_code=backup_codes[0])
    assert reused.status_code == 401


async def test_admin_settings(client, admin, customer):
    headers = auth_headers(admin)
    updated = await client.put(
        "/api/admin/settings/session_idle_minutes", json={"value": "15"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["value"] == "15"

    bad = await client.put(
        "/api/admin/settings/session_idle_minutes", json={"value": "-3"}, headers=headers
    )
    assert bad.status_code == 400

    listing = await client.get("/api/admin/settings", headers=headers)
    assert [s["key"] for s in listing.json()["data"]] == ["session_idle_minutes"]

    forbidden = await client.get("/api/admin/settings", headers=auth_headers(customer))
    assert forbidden.status_code == 403


async def test_role_session_length_sets_access_token_lifetime(client, admin):
    headers = auth_headers(admin)
    await client.put(
        "/api/admin/settings/session_max_minutes_customer", json={"value": "90"}, headers=headers
    )
    # The idle timeout does not shorten access tokens
    await client.put(
        "/api/admin/settings/session_idle_minutes", json={"value": "15"}, headers=headers
    )
    await _register(client)
    tokens = (await _login(client)).json()["data"]
    assert tokens["expires_in"] == 90 * 60
    claims = decode_access_token(tokens["access_token"])
    assert claims["exp"] - claims["iat"] == 90 * 60


async def test_create_initial_admin_only_once(db):
    first = await create_initial_admin(
        db, email="root@nolsaf.com", password="Adm1n!Passw0rd", full_name="Root"
    )
    assert first is not None and first.role == "ADMIN"
    second = await create_initial_admin(
        db, email="other@nolsaf.com", password="Adm1n!Passw0rd", full_name="Other"
    )
    assert second is None


async def test_passkey_login_options_issue_a_challenge(client):
    response = await client.post("/api/auth/passkeys/login/options", json={})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["challenge_id"]
    assert data["options"]["rpId"] == "localhost"


async def test_invalid_token_is_rejected(client):
    response = await client.get(
        "/api/auth/me", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


async def test_expired_lock_starts_a_fresh_failure_count(client, db, make_user):
    user = await make_user("CUSTOMER", email="lapsed@nolsaf.com")
    user.failed_login_attempts = settings.max_login_attempts
    user.locked_until = utc_now() - timedelta(minutes=1)
    await db.commit()

    response = await _login(client, email="lapsed@nolsaf.com", password="Wr0ng!Passw0rd")
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"

    await db.refresh(user)
    assert user.failed_login_attempts == 1
    assert user.locked_until is None
