"""External API integrations.

This package contains:
- Plaid client: Link tokens, token exchange, Items, transactions sync and
  webhook verification keys
- Stripe client: Checkout, customer portal and webhook signature checks
- Provider exceptions shared by both clients
"""

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderError,
)
from integrations.plaid_client import PlaidClient
from integrations.stripe_client import StripeClient, StripeWebhookError

__all__ = [
    "PlaidClient",
    "ProviderAPIError",
    "ProviderAuthError",
    "ProviderConnectionError",
    "ProviderDataError",
    "ProviderError",
    "StripeClient",
    "StripeWebhookError",
]
