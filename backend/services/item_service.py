"""PlaidItem persistence and lifecycle."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderError
from models import ItemStatus, PlaidItem, PlaidItemDeletion
from services.encryption_service import EncryptionService
from services.plan_limit_service import PlanLimitCheck, PlanLimitService

logger = logging.getLogger(__name__)


class ItemNotFoundError(Exception):
    """No (non-deleted) Item with this id belongs to the user."""


class ItemOwnershipError(Exception):
    """The Item id is already linked to a different user."""


class DeletionRateLimitError(Exception):
    """The user deleted an Item too recently to delete another."""

    def __init__(self, info: "DeletionInfo"):
        self.info = info
        super().__init__(
            f"Connections can be removed once every {info.cooldown_days} days; "
            f"try again in {info.days_until_next} day(s)"
        )


@dataclass(frozen=True)
class DeletionInfo:
    can_delete: bool
    days_until_next: int
    cooldown_days: int
    last_deletion_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "can_delete": self.can_delete,
            "days_until_next": self.days_until_next,
            "cooldown_days": self.cooldown_days,
            "last_deletion_at": self.last_deletion_at.isoformat() if self.last_deletion_at else None,
        }


@dataclass(frozen=True)
class ConnectedItems:
    """A user's Items together with their plan usage and deletion allowance."""

    items: list[PlaidItem]
    plan: PlanLimitCheck
    deletion: DeletionInfo


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ItemService:
    """Service for storing and managing linked Items."""

    @staticmethod
    def save_item(
        db: Session,
        user_id: str,
        item_id: str,
        access_token: str,
        institution_id: str | None = None,
        institution_name: str | None = None,
        encryption: EncryptionService | None = None,
    ) -> tuple[PlaidItem, bool]:
        """Persist an Item with its access token encrypted.

        Idempotent on ``item_id``: a repeat for the same user refreshes the
        stored credential and institution and reactivates a soft-deleted
        row instead of inserting.

        Returns:
            ``(item, created)``

        Raises:
            ItemOwnershipError: The Item is linked to another user.
        """
        encryption = encryption or EncryptionService()
        encrypted = encryption.encrypt(access_token)

        existing = db.query(PlaidItem).filter(PlaidItem.item_id == item_id).first()
        if existing is not None:
            if existing.user_id != user_id:
                raise ItemOwnershipError(f"Item {item_id} belongs to another user")
            existing.access_token = encrypted
            if institution_id:
                existing.institution_id = institution_id
            if institution_name:
                existing.institution_name = institution_name
            if existing.status == ItemStatus.DELETED.value:
                existing.status = ItemStatus.ACTIVE.value
                existing.deleted_at = None
                existing.transactions_cursor = None
                logger.info("Reactivated PlaidItem %s for user %s", item_id, user_id)
            db.commit()
            db.refresh(existing)
            return existing, False

        item = PlaidItem(
            user_id=user_id,
            item_id=item_id,
            access_token=encrypted,
            institution_id=institution_id,
            institution_name=institution_name,
            status=ItemStatus.ACTIVE.value,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info("Created PlaidItem %s (%s) for user %s", item_id, institution_name, user_id)
        return item, True

    @staticmethod
    def get_item_by_item_id(db: Session, item_id: str) -> PlaidItem | None:
        return db.query(PlaidItem).filter(PlaidItem.item_id == item_id).first()

    @staticmethod
    def get_user_item(db: Session, user_id: str, item_id: str) -> PlaidItem | None:
        """A non-deleted Item owned by ``user_id``."""
        return (
            db.query(PlaidItem)
            .filter(
                PlaidItem.user_id == user_id,
                PlaidItem.item_id == item_id,
                PlaidItem.status != ItemStatus.DELETED.value,
            )
            .first()
        )

    @staticmethod
    def list_items(db: Session, user_id: str, include_deleted: bool = False) -> list[PlaidItem]:
        query = db.query(PlaidItem).filter(PlaidItem.user_id == user_id)
        if not include_deleted:
            query = query.filter(PlaidItem.status != ItemStatus.DELETED.value)
        return query.order_by(PlaidItem.created_at.desc()).all()

    @staticmethod
    def get_access_token(item: PlaidItem, encryption: EncryptionService | None = None) -> str:
        """Decrypt the Item's stored access token."""
        return (encryption or EncryptionService()).decrypt(item.access_token)

    @staticmethod
    def get_deletion_info(
        db: Session,
        user_id: str,
        now: datetime | None = None,
        cooldown_days: int | None = None,
    ) -> DeletionInfo:
        """Whether the user may delete an Item now (one per cooldown window)."""
        now = now or datetime.now(timezone.utc)
        cooldown_days = settings.ITEM_DELETION_COOLDOWN_DAYS if cooldown_days is None else cooldown_days

        last = (
            db.query(PlaidItemDeletion)
            .filter(PlaidItemDeletion.user_id == user_id)
            .order_by(PlaidItemDeletion.deleted_at.desc())
            .first()
        )
        if last is None or cooldown_days <= 0:
            return DeletionInfo(
                can_delete=True,
                days_until_next=0,
                cooldown_days=cooldown_days,
                last_deletion_at=last.deleted_at if last else None,
            )

        next_allowed = _as_utc(last.deleted_at) + timedelta(days=cooldown_days)
        if now >= next_allowed:
            return DeletionInfo(True, 0, cooldown_days, last.deleted_at)

        remaining = next_allowed - now
        days = remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)
        return DeletionInfo(False, days, cooldown_days, last.deleted_at)

    @staticmethod
    def delete_item(
        db: Session,
        user_id: str,
        item_id: str,
        plaid_client,
        reason: str | None = None,
        encryption: EncryptionService | None = None,
        now: datetime | None = None,
    ) -> PlaidItem:
        """Remove an Item at Plaid and soft-delete it locally.

        Raises:
            ItemNotFoundError: No such non-deleted Item for the user.
            DeletionRateLimitError: Inside the deletion cooldown window.
        """
        now = now or datetime.now(timezone.utc)
        item = ItemService.get_user_item(db, user_id, item_id)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {item_id}")

        info = ItemService.get_deletion_info(db, user_id, now=now)
        if not info.can_delete:
            raise DeletionRateLimitError(info)

        # Revoke with Plaid; proceed with the local delete even if this fails
        try:
            plaid_client.remove_item(ItemService.get_access_token(item, encryption))
        except ProviderError as e:
            logger.warning("Failed to remove Plaid item %s remotely (removing locally anyway): %s", item_id, e)

        item.status = ItemStatus.DELETED.value
        item.deleted_at = now
        db.add(
            PlaidItemDeletion(
                user_id=user_id,
                item_id=item.item_id,
                institution_id=item.institution_id,
                institution_name=item.institution_name,
                deleted_at=now,
                reason=reason,
            )
        )
        db.commit()
        db.refresh(item)
        logger.info("Deleted PlaidItem %s for user %s", item_id, user_id)
        return item

    @staticmethod
    def mark_error(db: Session, item: PlaidItem, error_code: str | None, error_message: str | None) -> None:
        item.status = ItemStatus.ERROR.value
        item.error_code = error_code
        item.error_message = error_message
        db.commit()

    @staticmethod
    def get_connected_items(db: Session, user_id: str, now: datetime | None = None) -> ConnectedItems:
        return ConnectedItems(
            items=ItemService.list_items(db, user_id),
            plan=PlanLimitService.check_can_add_item(db, user_id),
            deletion=ItemService.get_deletion_info(db, user_id, now=now),
        )
