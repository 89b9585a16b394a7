"""Plaid Link flow: link tokens, public-token exchange and Item creation.

Shared by the HTTP routes, the MCP tools and the LINK webhook reconciler so
every path into "a new Item exists" runs the same plan-limit re-check.
There is no transaction around exchange-then-persist: a crash between the
two leaves an access token at Plaid with no local row.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderError
from models import LinkSession, LinkSessionStatus, PlaidItem
from services.email_service import EmailService
from services.item_service import ItemNotFoundError, ItemService
from services.plan_limit_service import PlanLimitCheck, PlanLimitError, PlanLimitService
from services.user_service import UserService

logger = logging.getLogger(__name__)

SyncTrigger = Callable[[str], None]


class ItemAddOutcome(str, Enum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    LIMIT_REACHED = "limit_reached"
    NO_PLAN = "no_plan"


@dataclass(frozen=True)
class ItemAddResult:
    outcome: ItemAddOutcome
    item: PlaidItem | None = None
    limit: PlanLimitCheck | None = None

    @property
    def persisted(self) -> bool:
        """True when an Item row exists for the exchanged token."""
        return self.outcome in (ItemAddOutcome.ADDED, ItemAddOutcome.DUPLICATE)


def _parse_expiration(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unparseable link token expiration %r", value)
        return None


class LinkService:
    """Service for the Plaid Link flow.

    Args:
        plaid_client: A :class:`integrations.plaid_client.PlaidClient` (or a
            test double with the same methods).
        sync_trigger: Called with the Plaid ``item_id`` after a new Item is
            persisted to start the initial transaction sync.  Failures are
            logged and never propagate.
        email_service: Notifier for bank-connection emails.
    """

    def __init__(
        self,
        plaid_client,
        sync_trigger: SyncTrigger | None = None,
        email_service: EmailService | None = None,
    ):
        self._plaid = plaid_client
        self._sync_trigger = sync_trigger
        self._email = email_service

    def create_link_token(self, db: Session, user_id: str, redirect_uri: str | None = None) -> dict:
        """Create a link token and its pending LinkSession.

        Raises:
            PlanLimitError: No active plan, or no free slot.
        """
        check = PlanLimitService.check_can_add_item(db, user_id)
        if not check.allowed:
            raise PlanLimitError(check)

        token = self._plaid.create_link_token(
            user_id,
            webhook_url=settings.webhook_url,
            redirect_uri=redirect_uri,
        )
        session = LinkSession(
            user_id=user_id,
            link_token=token["link_token"],
            status=LinkSessionStatus.PENDING.value,
            expires_at=_parse_expiration(token.get("expiration")),
        )
        db.add(session)
        db.commit()
        logger.info("Created link session %s for user %s", session.id, user_id)
        return {
            "link_token": token["link_token"],
            "expiration": token.get("expiration"),
            "session_id": session.id,
        }

    def create_update_link_token(self, db: Session, user_id: str, item_id: str) -> dict:
        """Link token in update mode, for re-authenticating an existing Item.

        No plan-limit check: the Item already holds a slot.
        """
        item = ItemService.get_user_item(db, user_id, item_id)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {item_id}")
        token = self._plaid.create_link_token(
            user_id,
            webhook_url=settings.webhook_url,
            access_token=ItemService.get_access_token(item),
        )
        return {"link_token": token["link_token"], "expiration": token.get("expiration")}

    def add_item(
        self,
        db: Session,
        user_id: str,
        public_token: str,
        institution_id: str | None = None,
        institution_name: str | None = None,
    ) -> ItemAddResult:
        """Exchange ``public_token`` and persist the resulting Item.

        The plan limit is evaluated immediately before the exchange so
        concurrent adds within one Link session cannot overshoot it.
        """
        check = PlanLimitService.check_can_add_item(db, user_id)
        if not check.allowed:
            outcome = ItemAddOutcome.LIMIT_REACHED if check.has_plan else ItemAddOutcome.NO_PLAN
            logger.warning(
                "Skipping item add for user %s: %s (%d/%s)",
                user_id,
                outcome.value,
                check.item_count,
                check.max_items,
            )
            return ItemAddResult(outcome=outcome, limit=check)

        exchanged = self._plaid.exchange_public_token(public_token)
        item_id = exchanged["item_id"]
        access_token = exchanged["access_token"]

        existing = ItemService.get_user_item(db, user_id, item_id)
        if existing is not None:
            logger.info("Item %s already linked for user %s, skipping", item_id, user_id)
            return ItemAddResult(outcome=ItemAddOutcome.DUPLICATE, item=existing, limit=check)

        if not institution_id or not institution_name:
            try:
                info = self._plaid.get_item(access_token)
                institution_id = institution_id or info.get("institution_id")
                institution_name = institution_name or info.get("institution_name")
            except ProviderError as e:
                logger.warning("Could not fetch institution for item %s: %s", item_id, e)

        item, _ = ItemService.save_item(
            db,
            user_id,
            item_id,
            access_token,
            institution_id=institution_id,
            institution_name=institution_name,
        )
        self._trigger_initial_sync(item_id)
        return ItemAddResult(outcome=ItemAddOutcome.ADDED, item=item, limit=check)

    def exchange_public_token(
        self,
        db: Session,
        user_id: str,
        public_token: str,
        institution_id: str | None = None,
        institution_name: str | None = None,
    ) -> PlaidItem:
        """Client-side completion of Link: add the Item and notify the user.

        Raises:
            PlanLimitError: No active plan, or no free slot.
        """
        result = self.add_item(db, user_id, public_token, institution_id, institution_name)
        if not result.persisted:
            raise PlanLimitError(result.limit)

        if result.outcome is ItemAddOutcome.ADDED:
            self._notify_connected(db, user_id, result.item)
        return result.item

    def _trigger_initial_sync(self, item_id: str) -> None:
        if self._sync_trigger is None:
            return
        try:
            self._sync_trigger(item_id)
        except Exception:
            logger.exception("Failed to start initial sync for item %s", item_id)

    def _notify_connected(self, db: Session, user_id: str, item: PlaidItem) -> None:
        if self._email is None:
            return
        user = UserService.get_user(db, user_id)
        if user is None or not user.email:
            return
        self._email.send_bank_connection_notification(user.email, user.name, item.institution_name)
