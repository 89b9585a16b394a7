"""Unit tests for the provider exception hierarchy."""

import pytest

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)


class TestExceptionHierarchy:
    """All provider exceptions are caught by except ProviderError."""

    def test_catch_all_provider_errors(self):
        exceptions = [
            ProviderAuthError("auth", provider_name="Plaid"),
            ProviderConnectionError("conn", provider_name="Plaid"),
            ProviderAPIError("api", provider_name="Stripe", status_code=400),
            ProviderDataError("data", provider_name="Plaid"),
        ]
        for exc in exceptions:
            with pytest.raises(ProviderError):
                raise exc

    def test_error_code_carried(self):
        exc = ProviderAuthError("login", provider_name="Plaid", error_code="ITEM_LOGIN_REQUIRED")
        assert exc.error_code == "ITEM_LOGIN_REQUIRED"
        assert exc.provider_name == "Plaid"

    def test_error_code_defaults_to_none(self):
        assert ProviderDataError("bad json").error_code is None


class TestRetriable:
    @pytest.mark.parametrize("status,expected", [(429, True), (500, True), (503, True), (400, False), (401, False)])
    def test_api_error_by_status(self, status, expected):
        assert ProviderAPIError("x", status_code=status).retriable is expected

    def test_none_status_is_not_retriable(self):
        assert ProviderAPIError("unknown").retriable is False

    def test_connection_error_retriable_by_default(self):
        assert ProviderConnectionError("timeout").retriable is True
        assert ProviderConnectionError("dns", retriable=False).retriable is False


class TestExceptionStr:
    def test_str_is_message(self):
        exc = ProviderAPIError("rate limited", provider_name="Plaid", error_code="RATE_LIMIT_EXCEEDED", status_code=429)
        assert str(exc) == "rate limited"
