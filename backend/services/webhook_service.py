"""ITEM / TRANSACTIONS / AUTH webhook processing.

Every non-LINK webhook is stored as a :class:`models.PlaidWebhook` receipt
before it is routed.  A handler error is recorded on the receipt and
re-raised so the endpoint answers 500 and Plaid redelivers.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from models import ItemStatus, PlaidItem, PlaidWebhook
from schemas.webhooks import WebhookEnvelope

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("Unparseable timestamp %r in webhook", value)
        return None


class WebhookService:
    """Stores and routes non-LINK Plaid webhooks.

    Args:
        sync_trigger: Called with an ``item_id`` when Plaid reports new
            transactions.  Failures are logged, not raised.
    """

    def __init__(self, sync_trigger: Callable[[str], None] | None = None):
        self._sync_trigger = sync_trigger

    def process_webhook(self, db: Session, envelope: WebhookEnvelope, payload: dict) -> PlaidWebhook:
        item = None
        if envelope.item_id:
            item = db.query(PlaidItem).filter(PlaidItem.item_id == envelope.item_id).first()

        receipt = PlaidWebhook(
            item_id=envelope.item_id,
            user_id=item.user_id if item else None,
            webhook_type=envelope.webhook_type,
            webhook_code=envelope.webhook_code,
            error_code=envelope.error_code,
            payload=payload,
        )
        db.add(receipt)
        db.commit()
        receipt_id = receipt.id

        try:
            if item is None:
                logger.warning(
                    "%s.%s webhook for unknown item %s",
                    envelope.webhook_type,
                    envelope.webhook_code,
                    envelope.item_id,
                )
            elif item.status == ItemStatus.DELETED.value:
                # Deleted items must not reappear in the plan count.
                logger.info(
                    "%s.%s webhook for deleted item %s, not applied",
                    envelope.webhook_type,
                    envelope.webhook_code,
                    item.item_id,
                )
            else:
                item.last_webhook_at = _now()
                self._route(db, item, envelope, payload)
            receipt.processed = True
            receipt.processed_at = _now()
            db.commit()
        except Exception as e:
            db.rollback()
            self.mark_failed(db, receipt_id, e)
            raise
        return receipt

    @staticmethod
    def mark_failed(db: Session, receipt_id: str, error: Exception) -> None:
        receipt = db.get(PlaidWebhook, receipt_id)
        if receipt is None:
            return
        receipt.processing_error = {"message": str(error), "type": type(error).__name__}
        receipt.retry_count = (receipt.retry_count or 0) + 1
        db.commit()

    def _route(self, db: Session, item: PlaidItem, envelope: WebhookEnvelope, payload: dict) -> None:
        webhook_type = envelope.webhook_type
        if webhook_type == "ITEM":
            self._handle_item(db, item, envelope, payload)
        elif webhook_type == "TRANSACTIONS":
            self._handle_transactions(item, envelope)
        elif webhook_type == "AUTH":
            logger.info("AUTH.%s for item %s", envelope.webhook_code, item.item_id)
        else:
            logger.info("Unhandled webhook type %s.%s", webhook_type, envelope.webhook_code)

    def _handle_item(self, db: Session, item: PlaidItem, envelope: WebhookEnvelope, payload: dict) -> None:
        code = envelope.webhook_code
        if code == "ERROR":
            item.status = ItemStatus.ERROR.value
            item.error_code = envelope.error_code
            item.error_message = envelope.error_message
            logger.warning("Item %s error: %s", item.item_id, envelope.error_code)
        elif code == "LOGIN_REPAIRED":
            if item.status == ItemStatus.ERROR.value:
                item.status = ItemStatus.ACTIVE.value
                item.error_code = None
                item.error_message = None
            logger.info("Item %s login repaired", item.item_id)
        elif code == "USER_PERMISSION_REVOKED":
            item.status = ItemStatus.REVOKED.value
            logger.info("Item %s permission revoked by user", item.item_id)
        elif code == "WEBHOOK_UPDATE_ACKNOWLEDGED":
            item.status = ItemStatus.DELETED.value
            item.deleted_at = _now()
            logger.info("Item %s webhook update acknowledged, marked deleted", item.item_id)
        elif code == "PENDING_EXPIRATION":
            item.consent_expires_at = _parse_timestamp(payload.get("consent_expiration_time"))
            logger.info("Item %s consent expires at %s", item.item_id, item.consent_expires_at)
        else:
            logger.info("ITEM.%s for item %s", code, item.item_id)

    def _handle_transactions(self, item: PlaidItem, envelope: WebhookEnvelope) -> None:
        code = envelope.webhook_code
        if code != "SYNC_UPDATES_AVAILABLE":
            logger.info("TRANSACTIONS.%s for item %s", code, item.item_id)
            return
        if self._sync_trigger is None or item.status != ItemStatus.ACTIVE.value:
            return
        try:
            self._sync_trigger(item.item_id)
        except Exception:
            logger.exception("Failed to start transaction sync for item %s", item.item_id)

    @staticmethod
    def get_unprocessed_webhooks(db: Session, limit: int = 100) -> list[PlaidWebhook]:
        return (
            db.query(PlaidWebhook)
            .filter(PlaidWebhook.processed.is_(False))
            .order_by(PlaidWebhook.received_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_item_webhook_history(db: Session, item_id: str, limit: int = 50) -> list[PlaidWebhook]:
        return (
            db.query(PlaidWebhook)
            .filter(PlaidWebhook.item_id == item_id)
            .order_by(PlaidWebhook.received_at.desc())
            .limit(limit)
            .all()
        )
