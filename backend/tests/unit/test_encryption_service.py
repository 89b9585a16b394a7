"""Tests for EncryptionService."""

import pytest

from services.encryption_service import EncryptionError, EncryptionService


class TestEncryptionService:
    def test_round_trip(self):
        service = EncryptionService()
        token = service.encrypt("access-sandbox-8ab976e6")
        assert token != "access-sandbox-8ab976e6"
        assert service.decrypt(token) == "access-sandbox-8ab976e6"

    def test_ciphertexts_differ(self):
        service = EncryptionService()
        assert service.encrypt("same") != service.encrypt("same")

    def test_missing_key(self, monkeypatch):
        monkeypatch.setattr("services.encryption_service.settings.ENCRYPTION_KEY", "")
        with pytest.raises(EncryptionError, match="not configured"):
            EncryptionService()

    def test_invalid_key(self):
        with pytest.raises(EncryptionError, match="Invalid"):
            EncryptionService("not-a-fernet-key")

    def test_wrong_key_cannot_decrypt(self):
        token = EncryptionService().encrypt("secret")
        other = EncryptionService(EncryptionService.generate_key())
        with pytest.raises(EncryptionError):
            other.decrypt(token)

    def test_generated_key_is_usable(self):
        key = EncryptionService.generate_key()
        assert EncryptionService(key).decrypt(EncryptionService(key).encrypt("x")) == "x"
