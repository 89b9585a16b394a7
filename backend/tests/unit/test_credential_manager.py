"""Tests for services.credential_manager."""

import sys
from unittest.mock import MagicMock, patch

from services.credential_manager import (
    CREDENTIAL_KEYS,
    SERVICE_NAME,
    delete_credential,
    get_credential,
    set_credential,
    store_credentials,
)


# ---------------------------------------------------------------------------
# get_credential
# ---------------------------------------------------------------------------


class TestGetCredential:
    def test_returns_value(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.return_value = "secret123"
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = get_credential("PLAID_SECRET")
        assert result == "secret123"
        mock_keyring.get_password.assert_called_once_with(SERVICE_NAME, "PLAID_SECRET")

    def test_returns_none_when_not_found(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.return_value = None
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert get_credential("PLAID_SECRET") is None

    def test_returns_none_when_keyring_not_installed(self):
        with patch.dict(sys.modules, {"keyring": None}):
            assert get_credential("PLAID_SECRET") is None

    def test_returns_none_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.get_password.side_effect = Exception("no backend")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert get_credential("PLAID_SECRET") is None


# ---------------------------------------------------------------------------
# set_credential
# ---------------------------------------------------------------------------


class TestSetCredential:
    def test_stores_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert set_credential("ENCRYPTION_KEY", "fernet-key") is True
        mock_keyring.set_password.assert_called_once_with(SERVICE_NAME, "ENCRYPTION_KEY", "fernet-key")

    def test_rejects_non_credential_key(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert set_credential("DATABASE_URL", "postgresql://x") is False
        mock_keyring.set_password.assert_not_called()

    def test_rejects_empty_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert set_credential("PLAID_SECRET", "") is False
            assert set_credential("PLAID_SECRET", "   ") is False
        mock_keyring.set_password.assert_not_called()

    def test_returns_false_when_keyring_not_installed(self):
        with patch.dict(sys.modules, {"keyring": None}):
            assert set_credential("PLAID_SECRET", "secret123") is False

    def test_returns_false_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.set_password.side_effect = Exception("locked")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert set_credential("PLAID_SECRET", "secret123") is False

    def test_store_credentials_reports_each_key(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            result = store_credentials({"PLAID_SECRET": "secret123", "DATABASE_URL": "postgresql://x", "SMTP_PASSWORD": ""})
        assert result == {"PLAID_SECRET": True, "DATABASE_URL": False, "SMTP_PASSWORD": False}
        mock_keyring.set_password.assert_called_once_with(SERVICE_NAME, "PLAID_SECRET", "secret123")


# ---------------------------------------------------------------------------
# delete_credential
# ---------------------------------------------------------------------------


class TestDeleteCredential:
    def test_deletes_value(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("STRIPE_SECRET_KEY") is True
        mock_keyring.delete_password.assert_called_once_with(SERVICE_NAME, "STRIPE_SECRET_KEY")

    def test_rejects_non_credential_key(self):
        mock_keyring = MagicMock()
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("BASE_URL") is False
        mock_keyring.delete_password.assert_not_called()

    def test_returns_false_on_keyring_exception(self):
        mock_keyring = MagicMock()
        mock_keyring.delete_password.side_effect = Exception("not found")
        with patch.dict(sys.modules, {"keyring": mock_keyring}):
            assert delete_credential("STRIPE_SECRET_KEY") is False


class TestCredentialKeys:
    def test_contains_expected_keys(self):
        assert CREDENTIAL_KEYS == {
            "PLAID_CLIENT_ID",
            "PLAID_SECRET",
            "ENCRYPTION_KEY",
            "AUTH_JWT_SECRET",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "SMTP_PASSWORD",
        }

    def test_excludes_non_secret_keys(self):
        for key in ("DATABASE_URL", "BASE_URL", "PLAID_ENVIRONMENT", "LOG_LEVEL", "STRIPE_PRICE_BASIC"):
            assert key not in CREDENTIAL_KEYS

    def test_is_frozen(self):
        assert isinstance(CREDENTIAL_KEYS, frozenset)
