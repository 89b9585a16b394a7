"""Subscription model - billing state mirrored from Stripe."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid

ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")


class Subscription(Base):
    """A user's subscription to a plan.

    Created when checkout completes and kept in sync by Stripe
    ``customer.subscription.*`` webhooks.  Only ``active`` and ``trialing``
    rows grant access to linked-account slots.
    """

    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan = Column(String, nullable=False)  # "basic" | "pro" | "enterprise"
    status = Column(String, nullable=False, default="incomplete")
    stripe_customer_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, unique=True, nullable=True)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    trial_start = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="subscriptions")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SUBSCRIPTION_STATUSES
