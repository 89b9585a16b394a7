"""Stripe API client.

Wraps the handful of ``stripe`` SDK calls billing needs.  The API key is
passed per call rather than set on the ``stripe`` module so tests and
multiple clients never share global state.
"""

import logging

import stripe

from config import settings
from integrations.exceptions import ProviderAPIError, ProviderAuthError, ProviderConnectionError

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Stripe"


class StripeWebhookError(Exception):
    """Stripe webhook payload could not be parsed or its signature is invalid."""


class StripeClient:
    """Wrapper around the Stripe API."""

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None):
        self._api_key = api_key or settings.STRIPE_SECRET_KEY
        self._webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

    def is_configured(self) -> bool:
        return bool(self._api_key)

    @staticmethod
    def _map_stripe_error(exc: stripe.StripeError) -> Exception:
        message = f"Stripe error: {exc.user_message or exc}"
        code = getattr(exc, "code", None)
        if isinstance(exc, stripe.AuthenticationError):
            return ProviderAuthError(message, provider_name=PROVIDER_NAME, error_code=code)
        if isinstance(exc, stripe.APIConnectionError):
            return ProviderConnectionError(message, provider_name=PROVIDER_NAME, error_code=code)
        return ProviderAPIError(
            message,
            provider_name=PROVIDER_NAME,
            error_code=code,
            status_code=exc.http_status,
        )

    def create_customer(self, email: str, name: str | None = None, user_id: str | None = None) -> str:
        """Create a customer and return its id."""
        try:
            customer = stripe.Customer.create(
                email=email,
                name=name or None,
                metadata={"user_id": user_id} if user_id else {},
                api_key=self._api_key,
            )
        except stripe.StripeError as e:
            raise self._map_stripe_error(e) from e
        return customer["id"]

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        user_id: str,
        plan: str,
    ) -> str:
        """Create a subscription Checkout Session and return its URL."""
        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                customer=customer_id,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=user_id,
                subscription_data={"metadata": {"user_id": user_id, "plan": plan}},
                api_key=self._api_key,
            )
        except stripe.StripeError as e:
            raise self._map_stripe_error(e) from e
        return session["url"]

    def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a Customer Portal session and return its URL."""
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                api_key=self._api_key,
            )
        except stripe.StripeError as e:
            raise self._map_stripe_error(e) from e
        return session["url"]

    def construct_event(self, payload: bytes, signature_header: str | None) -> dict:
        """Verify a webhook signature and return the event as a dict.

        Raises:
            StripeWebhookError: Missing/invalid signature or malformed payload.
        """
        if not self._webhook_secret:
            raise StripeWebhookError("STRIPE_WEBHOOK_SECRET is not configured")
        if not signature_header:
            raise StripeWebhookError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature_header,
                secret=self._webhook_secret,
            )
        except ValueError as e:
            raise StripeWebhookError(f"Invalid payload: {e}") from e
        except stripe.SignatureVerificationError as e:
            raise StripeWebhookError(f"Invalid signature: {e}") from e
        return event.to_dict() if hasattr(event, "to_dict") else dict(event)
