"""Unit tests for PlaidClient."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from plaid import ApiException

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
)
from integrations.plaid_client import PlaidClient


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_settings():
    """Fixture that mocks settings with configured Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        ms.PLAID_CLIENT_ID = "test-client-id"
        ms.PLAID_SECRET = "test-secret"
        ms.PLAID_ENVIRONMENT = "sandbox"
        yield ms


@pytest.fixture
def mock_empty_settings():
    """Fixture that mocks settings with empty Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        ms.PLAID_CLIENT_ID = ""
        ms.PLAID_SECRET = ""
        ms.PLAID_ENVIRONMENT = "sandbox"
        yield ms


@pytest.fixture
def mock_plaid_api():
    """Fixture that provides a mocked PlaidApi."""
    with patch("integrations.plaid_client.PlaidApi") as MockCls:
        api_instance = MagicMock()
        MockCls.return_value = api_instance
        yield api_instance


def api_exception(status: int | None, body: dict | None = None, reason: str = "Bad Request") -> ApiException:
    exc = ApiException(status=status, reason=reason)
    exc.body = json.dumps(body) if body is not None else None
    return exc


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_is_configured(self, mock_settings):
        assert PlaidClient().is_configured() is True

    def test_not_configured(self, mock_empty_settings):
        assert PlaidClient().is_configured() is False

    def test_explicit_credentials_override_settings(self, mock_empty_settings):
        assert PlaidClient(client_id="cid", secret="sec").is_configured() is True

    def test_api_created_once(self, mock_settings):
        with patch("integrations.plaid_client.PlaidApi") as MockCls:
            client = PlaidClient()
            client._get_api()
            client._get_api()
        MockCls.assert_called_once()

    def test_unknown_environment_falls_back_to_sandbox(self, mock_settings):
        with patch("integrations.plaid_client.PlaidApi"), patch(
            "integrations.plaid_client.ApiClient"
        ), patch(
            "integrations.plaid_client.Configuration"
        ) as MockConfig:
            PlaidClient(environment="development")._get_api()
        assert MockConfig.call_args.kwargs["host"] == "https://sandbox.plaid.com"


# ---------------------------------------------------------------------------
# Link tokens and exchange
# ---------------------------------------------------------------------------


class TestCreateLinkToken:
    def test_new_connection(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {
            "link_token": "link-sandbox-abc",
            "expiration": datetime(2026, 3, 1, 16, 0, tzinfo=timezone.utc),
        }

        result = PlaidClient().create_link_token("user-1", webhook_url="https://app/api/plaid/webhook")

        assert result == {"link_token": "link-sandbox-abc", "expiration": "2026-03-01T16:00:00+00:00"}
        request = mock_plaid_api.link_token_create.call_args.args[0].to_dict()
        assert request["user"]["client_user_id"] == "user-1"
        assert "products" in request
        assert request["webhook"] == "https://app/api/plaid/webhook"
        assert "access_token" not in request

    def test_update_mode_omits_products(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {
            "link_token": "link-sandbox-update",
            "expiration": "2026-03-01T16:00:00Z",
        }

        result = PlaidClient().create_link_token("user-1", access_token="access-sandbox-1")

        assert result["expiration"] == "2026-03-01T16:00:00Z"
        request = mock_plaid_api.link_token_create.call_args.args[0].to_dict()
        assert request["access_token"] == "access-sandbox-1"
        assert "products" not in request
        assert "webhook" not in request


class TestExchangeAndItem:
    def test_exchange_public_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.return_value = {
            "access_token": "access-sandbox-1",
            "item_id": "item-1",
            "request_id": "req",
        }
        assert PlaidClient().exchange_public_token("public-sandbox-1") == {
            "access_token": "access-sandbox-1",
            "item_id": "item-1",
        }

    def test_get_item_with_institution_name(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.return_value = {
            "item": {"item_id": "item-1", "institution_id": "ins_3", "institution_name": "Chase"},
        }
        assert PlaidClient().get_item("access-1")["institution_name"] == "Chase"
        mock_plaid_api.institutions_get_by_id.assert_not_called()

    def test_get_item_looks_up_institution(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.return_value = {"item": {"item_id": "item-1", "institution_id": "ins_3"}}
        mock_plaid_api.institutions_get_by_id.return_value = {"institution": {"name": "Chase"}}

        result = PlaidClient().get_item("access-1")

        assert result == {"item_id": "item-1", "institution_id": "ins_3", "institution_name": "Chase"}

    def test_institution_lookup_failure_is_tolerated(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.return_value = {"item": {"item_id": "item-1", "institution_id": "ins_3"}}
        mock_plaid_api.institutions_get_by_id.side_effect = api_exception(
            400, {"error_code": "INVALID_INSTITUTION", "error_message": "invalid institution_id"}
        )
        assert PlaidClient().get_item("access-1")["institution_name"] is None

    def test_remove_item(self, mock_settings, mock_plaid_api):
        PlaidClient().remove_item("access-1")
        request = mock_plaid_api.item_remove.call_args.args[0]
        assert request.access_token == "access-1"


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestSyncTransactions:
    def test_maps_page(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {
            "added": [{"transaction_id": "txn-1", "amount": 4.5}],
            "modified": [],
            "removed": [{"transaction_id": "txn-0"}],
            "accounts": [{"account_id": "acc-1"}],
            "next_cursor": "cursor-1",
            "has_more": True,
        }

        page = PlaidClient().sync_transactions("access-1")

        assert page["added"][0]["transaction_id"] == "txn-1"
        assert page["removed"] == [{"transaction_id": "txn-0"}]
        assert page["next_cursor"] == "cursor-1"
        assert page["has_more"] is True
        request = mock_plaid_api.transactions_sync.call_args.args[0].to_dict()
        assert "cursor" not in request

    def test_passes_cursor(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {"next_cursor": "cursor-2", "has_more": False}
        PlaidClient().sync_transactions("access-1", cursor="cursor-1")
        request = mock_plaid_api.transactions_sync.call_args.args[0]
        assert request.cursor == "cursor-1"

    def test_missing_cursor_is_data_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.transactions_sync.return_value = {"added": [], "has_more": False}
        with pytest.raises(ProviderDataError):
            PlaidClient().sync_transactions("access-1")

    def test_get_accounts(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.return_value = {"accounts": [{"account_id": "acc-1"}]}
        assert PlaidClient().get_accounts("access-1") == [{"account_id": "acc-1"}]


def test_get_webhook_verification_key(mock_settings, mock_plaid_api):
    mock_plaid_api.webhook_verification_key_get.return_value = {
        "key": {"kid": "key-1", "kty": "EC", "crv": "P-256", "x": "x", "y": "y"},
    }
    key = PlaidClient().get_webhook_verification_key("key-1")
    assert key["kid"] == "key-1"
    assert mock_plaid_api.webhook_verification_key_get.call_args.args[0].key_id == "key-1"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    def test_item_login_required_is_auth_error(self):
        err = PlaidClient._map_plaid_error(
            api_exception(400, {"error_code": "ITEM_LOGIN_REQUIRED", "error_message": "login required"}),
            "item_get",
        )
        assert isinstance(err, ProviderAuthError)
        assert err.error_code == "ITEM_LOGIN_REQUIRED"
        assert "login required" in str(err)

    def test_unauthorized_status_is_auth_error(self):
        assert isinstance(PlaidClient._map_plaid_error(api_exception(401)), ProviderAuthError)

    def test_server_error_is_retriable_api_error(self):
        err = PlaidClient._map_plaid_error(
            api_exception(500, {"error_code": "INTERNAL_SERVER_ERROR", "error_message": "oops"})
        )
        assert isinstance(err, ProviderAPIError)
        assert err.status_code == 500
        assert err.retriable is True

    def test_rate_limit(self):
        err = PlaidClient._map_plaid_error(api_exception(429, {"error_code": "RATE_LIMIT_EXCEEDED"}))
        assert isinstance(err, ProviderAPIError)
        assert err.error_code == "RATE_LIMIT_EXCEEDED"

    def test_unparseable_body(self):
        exc = ApiException(status=400, reason="Bad Request")
        exc.body = "<html>"
        err = PlaidClient._map_plaid_error(exc, "item_get")
        assert isinstance(err, ProviderAPIError)
        assert err.error_code is None

    def test_no_status_is_connection_error(self):
        assert isinstance(PlaidClient._map_plaid_error(api_exception(None)), ProviderConnectionError)

    def test_call_translates_sdk_errors(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.side_effect = api_exception(
            400, {"error_code": "INVALID_PUBLIC_TOKEN", "error_message": "bad token"}
        )
        with pytest.raises(ProviderAPIError) as exc_info:
            PlaidClient().exchange_public_token("public-bad")
        assert exc_info.value.error_code == "INVALID_PUBLIC_TOKEN"

    def test_call_translates_network_errors(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_get.side_effect = urllib3.exceptions.MaxRetryError(None, "/item/get")
        with pytest.raises(ProviderConnectionError):
            PlaidClient().get_item("access-1")
