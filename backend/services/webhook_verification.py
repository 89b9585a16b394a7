"""Verification of Plaid's signed webhooks.

Plaid signs each webhook with an ES256 JWT in the ``Plaid-Verification``
header.  The JWT's ``kid`` names a public key fetched from
``/webhook_verification_key/get``; its claims carry ``iat`` and the
SHA-256 of the exact request body.
"""

import base64
import hashlib
import hmac
import logging
import time

import jwt
from cryptography.hazmat.primitives.asymmetric.ec import SECP256R1, EllipticCurvePublicNumbers

from integrations.exceptions import ProviderError

logger = logging.getLogger(__name__)

VERIFICATION_HEADER = "Plaid-Verification"
MAX_WEBHOOK_AGE_SECONDS = 5 * 60


class WebhookVerificationError(Exception):
    """The webhook is unsigned, forged, stale or was tampered with."""


def _b64url_to_int(value: str) -> int:
    padded = value + "=" * (-len(value) % 4)
    return int.from_bytes(base64.urlsafe_b64decode(padded), "big")


def public_key_from_jwk(jwk: dict):
    """Build an EC P-256 public key from Plaid's JWK fields."""
    if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
        raise WebhookVerificationError(
            f"Unsupported verification key type {jwk.get('kty')}/{jwk.get('crv')}"
        )
    try:
        numbers = EllipticCurvePublicNumbers(
            x=_b64url_to_int(jwk["x"]),
            y=_b64url_to_int(jwk["y"]),
            curve=SECP256R1(),
        )
        return numbers.public_key()
    except (KeyError, ValueError) as e:
        raise WebhookVerificationError(f"Malformed verification key: {e}") from e


class WebhookVerifier:
    """Verifies ``Plaid-Verification`` headers against the request body."""

    def __init__(self, plaid_client, max_age_seconds: int = MAX_WEBHOOK_AGE_SECONDS):
        self._plaid = plaid_client
        self._max_age = max_age_seconds

    def verify(self, body: bytes, signed_jwt: str | None, now: float | None = None) -> dict:
        """Return the verified JWT claims.

        Raises:
            WebhookVerificationError: On any verification failure.
        """
        if not signed_jwt:
            raise WebhookVerificationError(f"Missing {VERIFICATION_HEADER} header")

        try:
            header = jwt.get_unverified_header(signed_jwt)
        except jwt.PyJWTError as e:
            raise WebhookVerificationError(f"Malformed verification JWT: {e}") from e

        if header.get("alg") != "ES256":
            raise WebhookVerificationError(f"Unexpected JWT algorithm {header.get('alg')!r}")
        key_id = header.get("kid")
        if not key_id:
            raise WebhookVerificationError("Verification JWT has no kid")

        try:
            jwk = self._plaid.get_webhook_verification_key(key_id)
        except ProviderError as e:
            raise WebhookVerificationError(f"Could not fetch verification key {key_id}: {e}") from e
        if jwk.get("expired_at"):
            raise WebhookVerificationError(f"Verification key {key_id} has expired")

        try:
            claims = jwt.decode(
                signed_jwt,
                public_key_from_jwk(jwk),
                algorithms=["ES256"],
                options={"require": ["iat"], "verify_aud": False},
            )
        except jwt.PyJWTError as e:
            raise WebhookVerificationError(f"Invalid webhook signature: {e}") from e

        now = time.time() if now is None else now
        if now - claims["iat"] > self._max_age:
            raise WebhookVerificationError("Webhook is older than the allowed window")

        expected = claims.get("request_body_sha256") or ""
        actual = hashlib.sha256(body).hexdigest()
        if not hmac.compare_digest(expected, actual):
            raise WebhookVerificationError("Webhook body hash mismatch")

        logger.debug("Verified webhook signed with key %s", key_id)
        return claims
