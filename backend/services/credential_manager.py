"""OS keychain storage for AskMyMoney deployment secrets.

Plaid keys, the Fernet key for access tokens, the auth JWT secret, Stripe
keys and the SMTP password may live in the keychain under the
``askmymoney`` service instead of a plaintext ``.env``.  Hosts without a
keychain backend (containers, CI) simply get ``None`` back and fall
through to environment variables in :mod:`config`.
"""

import logging
from types import ModuleType

logger = logging.getLogger(__name__)

SERVICE_NAME = "askmymoney"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "PLAID_CLIENT_ID",
        "PLAID_SECRET",
        "ENCRYPTION_KEY",
        "AUTH_JWT_SECRET",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "SMTP_PASSWORD",
    }
)


def _backend() -> ModuleType | None:
    # Imported per call so tests can swap sys.modules["keyring"].
    try:
        import keyring
    except ImportError:
        return None
    return keyring


def _is_secret_key(key: str, action: str) -> bool:
    if key in CREDENTIAL_KEYS:
        return True
    logger.warning("Refusing to %s %s: not a keychain-managed secret", action, key)
    return False


def get_credential(key: str) -> str | None:
    """Read ``key`` from the keychain, or ``None`` when absent or unavailable."""
    backend = _backend()
    if backend is None:
        return None
    try:
        return backend.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Write one secret to the keychain.

    Returns:
        ``False`` when ``key`` is not in :data:`CREDENTIAL_KEYS`, the
        value is blank, or the keychain rejects the write.
    """
    if not _is_secret_key(key, "store"):
        return False
    if not value or not value.strip():
        logger.warning("Refusing to store blank value for %s", key)
        return False

    backend = _backend()
    if backend is None:
        logger.warning("keyring is not installed, %s left in the environment", key)
        return False
    try:
        backend.set_password(SERVICE_NAME, key, value)
    except Exception:
        logger.warning("Keychain rejected %s", key, exc_info=True)
        return False
    logger.info("Stored %s in keychain", key)
    return True


def store_credentials(values: dict[str, str]) -> dict[str, bool]:
    """Write several secrets; returns per-key success in input order."""
    return {key: set_credential(key, value) for key, value in values.items()}


def delete_credential(key: str) -> bool:
    if not _is_secret_key(key, "delete"):
        return False
    backend = _backend()
    if backend is None:
        return False
    try:
        backend.delete_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Failed to delete %s from keychain", key, exc_info=True)
        return False
    logger.info("Deleted %s from keychain", key)
    return True
