"""Typed exception hierarchy for provider errors.

Lets callers tell credential problems (the user must re-link) apart from
transient network failures and bad upstream data.
"""


class ProviderError(Exception):
    """Base exception for all provider-related errors.

    Carries the provider name and, when the provider reports one, its
    machine-readable error code (e.g. Plaid's ``ITEM_LOGIN_REQUIRED``).
    """

    def __init__(self, message: str, provider_name: str = "", error_code: str | None = None):
        self.provider_name = provider_name
        self.error_code = error_code
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Credentials missing, expired, or invalid (HTTP 401/403, login required)."""

    pass


class ProviderConnectionError(ProviderError):
    """Network failures: timeouts, DNS resolution, connection refused.

    Retriable by default.
    """

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        error_code: str | None = None,
        retriable: bool = True,
    ):
        self.retriable = retriable
        super().__init__(message, provider_name, error_code)


class ProviderAPIError(ProviderError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        error_code: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name, error_code)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProviderDataError(ProviderError):
    """Malformed or unparseable response from the provider."""

    pass
