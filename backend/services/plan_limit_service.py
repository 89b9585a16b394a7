"""Plan-limit evaluation.

Decides whether a user may link another Item based on their current
subscription.  The check is cheap and is re-run at every item-add attempt,
including each Item of a Multi-Item Link session, so the limit holds after
every single add.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar

from sqlalchemy.orm import Session

from models import ACTIVE_SUBSCRIPTION_STATUSES, ItemStatus, PlaidItem, Subscription

logger = logging.getLogger(__name__)

# None means unlimited.
PLAN_LIMITS: dict[str, int | None] = {
    "basic": 3,
    "pro": 10,
    "enterprise": None,
}


@dataclass(frozen=True)
class PlanLimit:
    """Item ceiling for a user's plan.

    ``PlanLimit.NO_PLAN`` (no active subscription) is distinct from an
    unlimited plan, which has a plan name and ``max_items=None``.
    """

    plan: str | None
    max_items: int | None

    NO_PLAN: ClassVar["PlanLimit"]

    @property
    def has_plan(self) -> bool:
        return self.plan is not None

    @property
    def is_unlimited(self) -> bool:
        return self.has_plan and self.max_items is None


PlanLimit.NO_PLAN = PlanLimit(plan=None, max_items=0)


@dataclass(frozen=True)
class PlanLimitCheck:
    """Outcome of :meth:`PlanLimitService.check_can_add_item`."""

    allowed: bool
    plan: str | None
    item_count: int
    max_items: int | None
    reason: str | None = None

    @property
    def has_plan(self) -> bool:
        return self.plan is not None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "plan": self.plan,
            "item_count": self.item_count,
            "max_items": self.max_items,
            "max_items_display": format_limit(self.max_items),
            "reason": self.reason,
        }


class PlanLimitError(Exception):
    """A user tried to add an Item their plan does not allow."""

    def __init__(self, check: PlanLimitCheck):
        self.check = check
        super().__init__(check.reason or "Plan limit reached")


def format_limit(max_items: int | None) -> str:
    """Render a ceiling for display (``"3"`` or ``"Unlimited"``)."""
    return "Unlimited" if max_items is None else str(max_items)


class PlanLimitService:
    """Service for subscription plan limits."""

    @staticmethod
    def get_active_subscription(db: Session, user_id: str) -> Subscription | None:
        """Most recent subscription (by period start) that is active or trialing."""
        return (
            db.query(Subscription)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status.in_(ACTIVE_SUBSCRIPTION_STATUSES),
            )
            .order_by(Subscription.period_start.desc())
            .first()
        )

    @staticmethod
    def get_plan_limit(db: Session, user_id: str) -> PlanLimit:
        subscription = PlanLimitService.get_active_subscription(db, user_id)
        if subscription is None:
            return PlanLimit.NO_PLAN

        plan = (subscription.plan or "").lower()
        if plan not in PLAN_LIMITS:
            logger.warning(
                "User %s has active subscription with unknown plan %r; treating as no plan",
                user_id,
                subscription.plan,
            )
            return PlanLimit.NO_PLAN
        return PlanLimit(plan=plan, max_items=PLAN_LIMITS[plan])

    @staticmethod
    def count_user_items(db: Session, user_id: str) -> int:
        """Count Items that occupy a slot (everything except soft-deleted)."""
        return (
            db.query(PlaidItem)
            .filter(
                PlaidItem.user_id == user_id,
                PlaidItem.status != ItemStatus.DELETED.value,
            )
            .count()
        )

    @staticmethod
    def check_can_add_item(db: Session, user_id: str) -> PlanLimitCheck:
        limit = PlanLimitService.get_plan_limit(db, user_id)
        item_count = PlanLimitService.count_user_items(db, user_id)

        if not limit.has_plan:
            return PlanLimitCheck(
                allowed=False,
                plan=None,
                item_count=item_count,
                max_items=0,
                reason="An active subscription is required to connect accounts",
            )
        if limit.is_unlimited or item_count < limit.max_items:
            return PlanLimitCheck(
                allowed=True,
                plan=limit.plan,
                item_count=item_count,
                max_items=limit.max_items,
            )
        return PlanLimitCheck(
            allowed=False,
            plan=limit.plan,
            item_count=item_count,
            max_items=limit.max_items,
            reason=(
                f"The {limit.plan} plan allows {format_limit(limit.max_items)} "
                f"connected institutions ({item_count} in use)"
            ),
        )
