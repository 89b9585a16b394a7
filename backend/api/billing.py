"""Billing endpoints: hosted checkout, customer portal and Stripe webhooks."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from api.auth import get_current_user
from api.plaid import get_email_service
from api.webhooks import get_raw_body
from database import get_db
from integrations.exceptions import ProviderError
from integrations.stripe_client import StripeClient, StripeWebhookError
from models import User
from schemas.billing import BillingRedirectResponse, CheckoutRequest, PortalRequest
from services.billing_service import BillingError, BillingService
from services.email_service import EmailService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


def get_stripe_client() -> StripeClient:
    """Dependency for injecting the Stripe client (overridable in tests)."""
    return StripeClient()


def get_billing_service(
    stripe_client: StripeClient = Depends(get_stripe_client),
    email_service: EmailService = Depends(get_email_service),
) -> BillingService:
    return BillingService(stripe_client, email_service=email_service)


@router.post("/checkout", response_model=BillingRedirectResponse)
def create_checkout(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: BillingService = Depends(get_billing_service),
):
    """Start a hosted Checkout for ``plan``."""
    try:
        url = billing.create_checkout_session(db, user, body.plan)
    except BillingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        logger.error("Stripe checkout failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to create checkout session")
    return BillingRedirectResponse(url=url)


@router.post("/portal", response_model=BillingRedirectResponse)
def create_portal(
    body: PortalRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    billing: BillingService = Depends(get_billing_service),
):
    """Open the Stripe customer portal."""
    try:
        url = billing.create_portal_session(db, user, return_url=body.return_url if body else None)
    except BillingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProviderError as e:
        logger.error("Stripe portal failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to create portal session")
    return BillingRedirectResponse(url=url)


@router.post("/webhook")
def stripe_webhook(
    body: bytes = Depends(get_raw_body),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    stripe_client: StripeClient = Depends(get_stripe_client),
    billing: BillingService = Depends(get_billing_service),
):
    """Receive a Stripe webhook."""
    try:
        event = stripe_client.construct_event(body, stripe_signature)
    except StripeWebhookError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    outcome = billing.handle_event(db, event)
    logger.info("Stripe %s: %s", event.get("type"), outcome)
    return {"received": True, "outcome": outcome}
