"""Plaid API client.

Thin wrapper over the plaid-python SDK covering the calls the link flow,
webhook verification and transaction sync need.  Instances are created
per request by a FastAPI dependency (``api.plaid.get_plaid_client``) so
tests can substitute :class:`tests.fixtures.mocks.MockPlaidClient`.

SDK ``ApiException``s are translated into the
:mod:`integrations.exceptions` hierarchy; callers never see plaid types.
"""

import json
import logging

import urllib3
from plaid import ApiException, Environment
from plaid.api.plaid_api import PlaidApi
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.institutions_get_by_id_request import InstitutionsGetByIdRequest
from plaid.model.item_get_request import ItemGetRequest
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.item_remove_request import ItemRemoveRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products
from plaid.model.transactions_sync_request import TransactionsSyncRequest
from plaid.model.webhook_verification_key_get_request import WebhookVerificationKeyGetRequest

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Plaid"

# Map PLAID_ENVIRONMENT setting to SDK host URLs.
# Plaid's Development environment is deprecated; only sandbox and production
# are supported.
_ENVIRONMENT_MAP: dict[str, str] = {
    "sandbox": Environment.Sandbox,
    "production": Environment.Production,
}

# Error codes that mean the user has to go back through Link (update mode).
AUTH_ERROR_CODES = frozenset(
    {
        "INVALID_ACCESS_TOKEN",
        "ITEM_LOGIN_REQUIRED",
        "INVALID_CREDENTIALS",
        "ITEM_LOCKED",
        "INVALID_API_KEYS",
    }
)

_CLIENT_NAME = "AskMyMoney"
_LINK_PRODUCTS = ("transactions",)
_COUNTRY_CODES = ("US",)


def _to_dict(obj) -> dict:
    """Convert an SDK model (or a plain mapping in tests) to a dict."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class PlaidClient:
    """Wrapper around the Plaid API."""

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        environment: str | None = None,
    ):
        self._client_id = client_id or settings.PLAID_CLIENT_ID
        self._secret = secret or settings.PLAID_SECRET
        self._environment = environment or settings.PLAID_ENVIRONMENT

        # Lazily created on first use
        self._api: PlaidApi | None = None

    def _get_api(self) -> PlaidApi:
        """Return (and cache) a PlaidApi instance."""
        if self._api is None:
            env_key = self._environment.lower()
            host = _ENVIRONMENT_MAP.get(env_key)
            if host is None:
                logger.warning(
                    "Unknown PLAID_ENVIRONMENT=%r, falling back to sandbox. "
                    "Valid values: sandbox, production",
                    self._environment,
                )
                host = Environment.Sandbox
            logger.info(
                "Plaid API client: environment=%s, host=%s, client_id=<configured>",
                env_key,
                host,
            )
            configuration = Configuration(
                host=host,
                api_key={
                    "clientId": self._client_id,
                    "secret": self._secret,
                },
            )
            self._api = PlaidApi(ApiClient(configuration))
        return self._api

    @property
    def provider_name(self) -> str:
        return PROVIDER_NAME

    def is_configured(self) -> bool:
        """Check if Plaid credentials are configured."""
        return bool(self._client_id) and bool(self._secret)

    def _call(self, operation: str, request):
        """Invoke ``PlaidApi.<operation>(request)`` with error translation."""
        api = self._get_api()
        try:
            return getattr(api, operation)(request)
        except ApiException as e:
            raise self._map_plaid_error(e, operation) from e
        except urllib3.exceptions.HTTPError as e:
            raise ProviderConnectionError(
                f"Plaid {operation} failed: {e}", provider_name=PROVIDER_NAME
            ) from e

    # ------------------------------------------------------------------
    # Link token & token exchange
    # ------------------------------------------------------------------

    def create_link_token(
        self,
        user_id: str,
        webhook_url: str | None = None,
        access_token: str | None = None,
        redirect_uri: str | None = None,
    ) -> dict:
        """Create a Plaid Link token.

        Passing ``access_token`` opens Link in update mode for an existing
        Item (re-authentication); products are omitted in that case.

        Returns:
            Dict with ``link_token`` and ``expiration`` (ISO-8601 string).
        """
        kwargs = {
            "user": LinkTokenCreateRequestUser(client_user_id=user_id),
            "client_name": _CLIENT_NAME,
            "country_codes": [CountryCode(code) for code in _COUNTRY_CODES],
            "language": "en",
        }
        if access_token:
            kwargs["access_token"] = access_token
        else:
            kwargs["products"] = [Products(p) for p in _LINK_PRODUCTS]
        if webhook_url:
            kwargs["webhook"] = webhook_url
        if redirect_uri:
            kwargs["redirect_uri"] = redirect_uri

        response = self._call("link_token_create", LinkTokenCreateRequest(**kwargs))
        expiration = response["expiration"]
        return {
            "link_token": response["link_token"],
            "expiration": expiration.isoformat() if hasattr(expiration, "isoformat") else str(expiration),
        }

    def exchange_public_token(self, public_token: str) -> dict:
        """Exchange a Plaid Link public_token for a permanent access_token.

        Returns:
            Dict with ``access_token`` and ``item_id``.
        """
        response = self._call(
            "item_public_token_exchange",
            ItemPublicTokenExchangeRequest(public_token=public_token),
        )
        return {
            "access_token": response["access_token"],
            "item_id": response["item_id"],
        }

    def get_item(self, access_token: str) -> dict:
        """Return ``item_id``, ``institution_id`` and ``institution_name``.

        Older Items may not carry ``institution_name`` on ``/item/get``; the
        name is then looked up through ``/institutions/get_by_id``.
        """
        response = self._call("item_get", ItemGetRequest(access_token=access_token))
        item = _to_dict(response["item"])
        institution_id = item.get("institution_id")
        institution_name = item.get("institution_name")

        if institution_id and not institution_name:
            try:
                inst = self._call(
                    "institutions_get_by_id",
                    InstitutionsGetByIdRequest(
                        institution_id=institution_id,
                        country_codes=[CountryCode(code) for code in _COUNTRY_CODES],
                    ),
                )
                institution_name = _to_dict(inst["institution"]).get("name")
            except ProviderError as e:
                logger.warning("Could not resolve institution %s: %s", institution_id, e)

        return {
            "item_id": item.get("item_id"),
            "institution_id": institution_id,
            "institution_name": institution_name,
        }

    def remove_item(self, access_token: str) -> None:
        """Revoke an access token by calling Plaid's /item/remove endpoint."""
        self._call("item_remove", ItemRemoveRequest(access_token=access_token))

    # ------------------------------------------------------------------
    # Accounts & transactions
    # ------------------------------------------------------------------

    def get_accounts(self, access_token: str) -> list[dict]:
        """Return the Item's accounts as plain dicts."""
        response = self._call("accounts_get", AccountsGetRequest(access_token=access_token))
        return [_to_dict(a) for a in response["accounts"]]

    def sync_transactions(self, access_token: str, cursor: str | None = None) -> dict:
        """Fetch one page of ``/transactions/sync``.

        Returns:
            Dict with ``added``, ``modified``, ``removed``, ``accounts``
            (lists of dicts), ``next_cursor`` and ``has_more``.
        """
        kwargs = {"access_token": access_token}
        if cursor:
            kwargs["cursor"] = cursor
        response = self._call("transactions_sync", TransactionsSyncRequest(**kwargs))
        page = _to_dict(response)
        try:
            return {
                "added": [_to_dict(t) for t in page.get("added", [])],
                "modified": [_to_dict(t) for t in page.get("modified", [])],
                "removed": [_to_dict(t) for t in page.get("removed", [])],
                "accounts": [_to_dict(a) for a in page.get("accounts", [])],
                "next_cursor": page["next_cursor"],
                "has_more": bool(page.get("has_more", False)),
            }
        except KeyError as e:
            raise ProviderDataError(
                f"Malformed transactions/sync response: missing {e}",
                provider_name=PROVIDER_NAME,
            ) from e

    # ------------------------------------------------------------------
    # Webhook verification
    # ------------------------------------------------------------------

    def get_webhook_verification_key(self, key_id: str) -> dict:
        """Fetch the JWK Plaid used to sign a webhook (``kid`` header)."""
        response = self._call(
            "webhook_verification_key_get",
            WebhookVerificationKeyGetRequest(key_id=key_id),
        )
        return _to_dict(response["key"])

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _map_plaid_error(exc: ApiException, operation: str = "") -> ProviderError:
        """Map a Plaid ApiException onto the provider exception hierarchy."""
        status = exc.status or 0
        message = f"Plaid {operation} failed: {exc.reason}" if operation else str(exc)

        error_code = None
        try:
            body = json.loads(exc.body) if exc.body else {}
        except (TypeError, ValueError):
            body = {}
        if isinstance(body, dict):
            error_code = body.get("error_code") or None
            error_message = body.get("error_message", "")
            if error_message:
                message = f"Plaid error ({error_code}): {error_message}"

        if status in (401, 403) or error_code in AUTH_ERROR_CODES:
            return ProviderAuthError(message, provider_name=PROVIDER_NAME, error_code=error_code)
        if status == 0:
            return ProviderConnectionError(message, provider_name=PROVIDER_NAME, error_code=error_code)
        return ProviderAPIError(
            message,
            provider_name=PROVIDER_NAME,
            error_code=error_code,
            status_code=status,
        )
