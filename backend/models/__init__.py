"""SQLAlchemy ORM models."""

from .link_session import LinkSession, LinkSessionStatus
from .plaid_account import PlaidAccount
from .plaid_item import ItemStatus, PlaidItem
from .plaid_item_deletion import PlaidItemDeletion
from .plaid_transaction import PlaidTransaction
from .plaid_webhook import PlaidWebhook
from .subscription import ACTIVE_SUBSCRIPTION_STATUSES, Subscription
from .user import User
from .utils import generate_uuid

__all__ = [
    "ACTIVE_SUBSCRIPTION_STATUSES",
    "ItemStatus",
    "LinkSession",
    "LinkSessionStatus",
    "PlaidAccount",
    "PlaidItem",
    "PlaidItemDeletion",
    "PlaidTransaction",
    "PlaidWebhook",
    "Subscription",
    "User",
    "generate_uuid",
]
