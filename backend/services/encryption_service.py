"""Fernet encryption for Plaid access tokens at rest."""

import logging

from cryptography.fernet import Fernet, InvalidToken

from config import settings

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a value cannot be encrypted or decrypted."""


class EncryptionService:
    """Symmetric encryption keyed by ``ENCRYPTION_KEY``.

    The key is a urlsafe base64 32-byte Fernet key; generate one with
    :meth:`generate_key`.
    """

    def __init__(self, key: str | None = None):
        key = key or settings.ENCRYPTION_KEY
        if not key:
            raise EncryptionError("ENCRYPTION_KEY is not configured")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Invalid ENCRYPTION_KEY: {e}") from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            logger.error("Failed to decrypt stored credential (wrong key or corrupt value)")
            raise EncryptionError("Stored credential could not be decrypted") from e
