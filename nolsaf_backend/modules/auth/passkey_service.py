"""WebAuthn (passkey) ceremonies.

Protocol work is delegated to py_webauthn; this module only keeps the
relying-party configuration and the pending challenges.
"""

import json
import secrets
from typing import Any

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from ...config import settings
from ...core.exceptions import AuthenticationError
from ...core.logging import get_logger
from ...core.ttl_cache import TTLCache, register_cache
from .models import Passkey, User

logger = get_logger(__name__)

TIMEOUT_MS = 60000
CHALLENGE_TTL_SECONDS = 5 * 60

_challenges: TTLCache[str, bytes] = register_cache(
    TTLCache("webauthn_challenges", ttl_seconds=CHALLENGE_TTL_SECONDS)
)


def _descriptors(passkeys: list[Passkey]) -> list[PublicKeyCredentialDescriptor]:
    return [
        PublicKeyCredentialDescriptor(id=base64url_to_bytes(p.credential_id))
        for p in passkeys
    ]


def _registration_key(user_id: int) -> str:
    return f"reg:{user_id}"


def _authentication_key(challenge_id: str) -> str:
    return f"auth:{challenge_id}"


def registration_options(user: User, existing: list[Passkey]) -> dict[str, Any]:
    """Build creation options and remember the challenge for this user."""
    options = generate_registration_options(
        rp_id=settings.webauthn_rp_id,
        rp_name=settings.webauthn_rp_name,
        user_id=str(user.id).encode(),
        user_name=user.email,
        user_display_name=user.full_name,
        timeout=TIMEOUT_MS,
        attestation=AttestationConveyancePreference.NONE,
        authenticator_selection=AuthenticatorSelectionCriteria(
            resident_key=ResidentKeyRequirement.PREFERRED,
            user_verification=UserVerificationRequirement.PREFERRED,
        ),
        exclude_credentials=_descriptors(existing),
    )
    _challenges.set(_registration_key(user.id), options.challenge)
    return json.loads(options_to_json(options))


def verify_registration(user: User, credential: dict[str, Any]) -> dict[str, Any]:
    """Verify an attestation and return the fields to persist.

    Raises:
        AuthenticationError: If no challenge is pending or verification fails
    """
    challenge = _challenges.pop(_registration_key(user.id))
    if challenge is None:
        raise AuthenticationError("Passkey registration expired. Please try again.")

    try:
        verified = verify_registration_response(
            credential=credential,
            expected_challenge=challenge,
            expected_rp_id=settings.webauthn_rp_id,
            expected_origin=settings.webauthn_origin,
        )
    except (WebAuthnException, ValueError, KeyError) as e:
        logger.info(f"Passkey registration rejected for user {user.id}: {e}")
        raise AuthenticationError("Passkey registration could not be verified")

    transports = (credential.get("response") or {}).get("transports")
    return {
        "credential_id": bytes_to_base64url(verified.credential_id),
        "public_key": bytes_to_base64url(verified.credential_public_key),
        "sign_count": verified.sign_count,
        "transports": transports if isinstance(transports, list) else None,
    }


def authentication_options(
    passkeys: list[Passkey] | None = None,
) -> tuple[str, dict[str, Any]]:
    """Build request options.

    Without ``passkeys`` the browser may offer any discoverable credential.

    Returns:
        Tuple of (challenge_id, options)
    """
    options = generate_authentication_options(
        rp_id=settings.webauthn_rp_id,
        timeout=TIMEOUT_MS,
        allow_credentials=_descriptors(passkeys or []),
        user_verification=UserVerificationRequirement.PREFERRED,
    )
    challenge_id = secrets.token_urlsafe(16)
    _challenges.set(_authentication_key(challenge_id), options.challenge)
    return challenge_id, json.loads(options_to_json(options))


def verify_authentication(
    challenge_id: str, credential: dict[str, Any], passkey: Passkey
) -> int:
    """Verify an assertion against a stored passkey.

    Returns:
        The new signature counter

    Raises:
        AuthenticationError: If no challenge is pending or verification fails
    """
    challenge = _challenges.pop(_authentication_key(challenge_id))
    if challenge is None:
        raise AuthenticationError("Passkey sign-in expired. Please try again.")

    try:
        verified = verify_authentication_response(
            credential=credential,
            expected_challenge=challenge,
            expected_rp_id=settings.webauthn_rp_id,
            expected_origin=settings.webauthn_origin,
            credential_public_key=base64url_to_bytes(passkey.public_key),
            credential_current_sign_count=passkey.sign_count,
        )
    except (WebAuthnException, ValueError, KeyError) as e:
        logger.info(f"Passkey assertion rejected for passkey {passkey.id}: {e}")
        raise AuthenticationError("Passkey could not be verified")

    return verified.new_sign_count


def credential_id_of(credential: dict[str, Any]) -> str:
    credential_id = credential.get("id") or credential.get("rawId")
    if not isinstance(credential_id, str) or not credential_id:
        raise AuthenticationError("Passkey credential is missing its id")
    return credential_id
