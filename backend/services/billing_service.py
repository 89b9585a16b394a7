"""Billing pass-through to Stripe.

Checkout and the customer portal are hosted by Stripe; this service only
creates their sessions and mirrors ``customer.subscription.*`` webhook
events into the ``subscriptions`` table that plan limits read.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from config import settings
from models import Subscription, User
from services.plan_limit_service import PLAN_LIMITS

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = frozenset(
    {
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    }
)


class BillingError(Exception):
    """Billing request cannot be fulfilled (bad plan, no customer, not configured)."""


def plan_price_ids() -> dict[str, str]:
    """Configured Stripe price id per plan (unconfigured plans omitted)."""
    prices = {
        "basic": settings.STRIPE_PRICE_BASIC,
        "pro": settings.STRIPE_PRICE_PRO,
        "enterprise": settings.STRIPE_PRICE_ENTERPRISE,
    }
    return {plan: price for plan, price in prices.items() if price}


def _from_timestamp(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class BillingService:
    """Service wrapping a :class:`integrations.stripe_client.StripeClient`."""

    def __init__(self, stripe_client, email_service=None):
        self._stripe = stripe_client
        self._email = email_service

    def get_or_create_customer(self, db: Session, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer_id = self._stripe.create_customer(user.email, user.name, user.id)
        user.stripe_customer_id = customer_id
        db.commit()
        logger.info("Created Stripe customer %s for user %s", customer_id, user.id)
        return customer_id

    def create_checkout_session(self, db: Session, user: User, plan: str) -> str:
        plan = plan.lower()
        if plan not in PLAN_LIMITS:
            raise BillingError(f"Unknown plan: {plan}")
        price_id = plan_price_ids().get(plan)
        if not price_id:
            raise BillingError(f"No Stripe price configured for plan {plan}")

        customer_id = self.get_or_create_customer(db, user)
        base = settings.BASE_URL.rstrip("/")
        return self._stripe.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=f"{base}/pricing/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base}/pricing",
            user_id=user.id,
            plan=plan,
        )

    def create_portal_session(self, db: Session, user: User, return_url: str | None = None) -> str:
        if not user.stripe_customer_id:
            raise BillingError("No billing account exists for this user yet")
        return self._stripe.create_billing_portal_session(
            customer_id=user.stripe_customer_id,
            return_url=return_url or f"{settings.BASE_URL.rstrip('/')}/pricing",
        )

    def handle_event(self, db: Session, event: dict) -> str:
        """Apply a verified Stripe event. Returns ``"updated"`` or ``"ignored"``."""
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            return self._link_checkout_customer(db, obj)
        if event_type in SUBSCRIPTION_EVENTS:
            return "updated" if self._upsert_subscription(db, obj) else "ignored"

        logger.debug("Ignoring Stripe event %s", event_type)
        return "ignored"

    @staticmethod
    def _link_checkout_customer(db: Session, session: dict) -> str:
        user_id = session.get("client_reference_id")
        customer_id = session.get("customer")
        if not user_id or not customer_id:
            return "ignored"
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            logger.warning("Checkout completed for unknown user %s", user_id)
            return "ignored"
        if user.stripe_customer_id != customer_id:
            user.stripe_customer_id = customer_id
            db.commit()
        return "updated"

    @staticmethod
    def _resolve_plan(sub: dict) -> str | None:
        plan = (sub.get("metadata") or {}).get("plan")
        if plan:
            return plan.lower()
        by_price = {price: name for name, price in plan_price_ids().items()}
        for line in (sub.get("items") or {}).get("data", []):
            price_id = (line.get("price") or {}).get("id")
            if price_id in by_price:
                return by_price[price_id]
        return None

    @staticmethod
    def _period(sub: dict) -> tuple:
        # Newer API versions moved the period onto subscription items
        start, end = sub.get("current_period_start"), sub.get("current_period_end")
        if start is None:
            lines = (sub.get("items") or {}).get("data", [])
            if lines:
                start = lines[0].get("current_period_start")
                end = lines[0].get("current_period_end")
        return _from_timestamp(start), _from_timestamp(end)

    def _upsert_subscription(self, db: Session, sub: dict) -> bool:
        customer_id = sub.get("customer")
        user_id = (sub.get("metadata") or {}).get("user_id")
        user = None
        if user_id:
            user = db.query(User).filter(User.id == user_id).first()
        if user is None and customer_id:
            user = db.query(User).filter(User.stripe_customer_id == customer_id).first()
        if user is None:
            logger.warning("Stripe subscription %s has no matching user", sub.get("id"))
            return False

        plan = self._resolve_plan(sub)
        if plan is None:
            logger.warning("Stripe subscription %s has no recognizable plan", sub.get("id"))
            return False

        row = db.query(Subscription).filter(Subscription.stripe_subscription_id == sub["id"]).first()
        created = row is None
        if created:
            row = Subscription(user_id=user.id, stripe_subscription_id=sub["id"], plan=plan)
            db.add(row)

        row.plan = plan
        row.status = sub.get("status") or "incomplete"
        row.stripe_customer_id = customer_id
        row.period_start, row.period_end = self._period(sub)
        row.trial_start = _from_timestamp(sub.get("trial_start"))
        row.trial_end = _from_timestamp(sub.get("trial_end"))
        row.cancel_at_period_end = bool(sub.get("cancel_at_period_end", False))
        db.commit()
        logger.info("Subscription %s for user %s is %s (%s)", sub["id"], user.id, row.status, plan)

        if created and row.is_active and self._email is not None:
            self._email.send_subscription_confirmation(user.email, user.name, plan)
        return True
