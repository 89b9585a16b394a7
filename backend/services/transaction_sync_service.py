"""Transaction sync via Plaid's ``/transactions/sync``.

Pages from the Item's stored cursor until ``has_more`` is false, upserting
accounts and added/modified transactions.  Transactions Plaid reports as
removed are counted and logged but kept.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from database import get_session_local
from integrations.exceptions import ProviderAPIError, ProviderAuthError, ProviderError
from models import ItemStatus, PlaidAccount, PlaidItem, PlaidTransaction
from services.encryption_service import EncryptionService
from services.item_service import ItemNotFoundError, ItemService

logger = logging.getLogger(__name__)

# Restart pagination from the original cursor when Plaid reports the data
# changed mid-pagination.
_MUTATION_ERROR_CODE = "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION"
_MAX_PAGINATION_RESTARTS = 3


@dataclass
class SyncSummary:
    item_id: str
    accounts_upserted: int = 0
    added: int = 0
    modified: int = 0
    removed: int = 0
    pages: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None and self.error_message is None

    def reset_counts(self) -> None:
        """Zero the page counters; a restarted sync re-reads every page."""
        self.accounts_upserted = 0
        self.added = 0
        self.modified = 0
        self.removed = 0
        self.pages = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "accounts_upserted": self.accounts_upserted,
            "added": self.added,
            "modified": self.modified,
            "removed": self.removed,
            "pages": self.pages,
            **(
                {"error_code": self.error_code, "error_message": self.error_message}
                if not self.ok
                else {}
            ),
        }


def _to_decimal(value) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _to_str(value) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def _to_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _to_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _json_safe(value):
    """Make SDK output storable in a JSON column."""
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class TransactionSyncService:
    """Service for pulling accounts and transactions for one Item."""

    def __init__(self, plaid_client, encryption: EncryptionService | None = None):
        self._plaid = plaid_client
        self._encryption = encryption

    def sync_item(self, db: Session, item_id: str) -> SyncSummary:
        """Sync one Item.

        Provider errors are returned on the summary rather than raised; an
        auth error (e.g. ``ITEM_LOGIN_REQUIRED``) also moves the Item to
        ``error`` so users see that it needs re-authentication.

        Raises:
            ItemNotFoundError: Unknown or deleted Item.
        """
        item = ItemService.get_item_by_item_id(db, item_id)
        if item is None or item.status == ItemStatus.DELETED.value:
            raise ItemNotFoundError(f"Item not found: {item_id}")

        access_token = ItemService.get_access_token(item, self._encryption)
        summary = SyncSummary(item_id=item_id)
        start_cursor = item.transactions_cursor

        try:
            cursor = self._sync_pages(db, item, access_token, start_cursor, summary)
        except ProviderError as e:
            db.rollback()
            summary.error_code = e.error_code or type(e).__name__
            summary.error_message = str(e)
            if isinstance(e, ProviderAuthError):
                ItemService.mark_error(db, item, e.error_code, str(e))
            logger.warning("Sync failed for item %s: %s", item_id, e)
            return summary

        item.transactions_cursor = cursor
        item.last_synced_at = datetime.now(timezone.utc)
        db.commit()
        logger.info(
            "Synced item %s: %d accounts, +%d ~%d -%d transactions over %d page(s)",
            item_id,
            summary.accounts_upserted,
            summary.added,
            summary.modified,
            summary.removed,
            summary.pages,
        )
        return summary

    def _sync_pages(
        self,
        db: Session,
        item: PlaidItem,
        access_token: str,
        start_cursor: str | None,
        summary: SyncSummary,
    ) -> str | None:
        restarts = 0
        cursor = start_cursor
        while True:
            try:
                page = self._plaid.sync_transactions(access_token, cursor)
            except ProviderAPIError as e:
                if e.error_code == _MUTATION_ERROR_CODE and restarts < _MAX_PAGINATION_RESTARTS:
                    restarts += 1
                    logger.info("Restarting sync for item %s after mid-pagination update", item.item_id)
                    cursor = start_cursor
                    summary.reset_counts()
                    continue
                raise

            summary.pages += 1
            known_accounts = self._upsert_accounts(db, item, page["accounts"])
            summary.accounts_upserted += len(page["accounts"])

            for txn in page["added"]:
                if self._upsert_transaction(db, item, txn, known_accounts):
                    summary.added += 1
            for txn in page["modified"]:
                if self._upsert_transaction(db, item, txn, known_accounts):
                    summary.modified += 1
            if page["removed"]:
                summary.removed += len(page["removed"])
                logger.info(
                    "Plaid removed %d transaction(s) for item %s; keeping local rows",
                    len(page["removed"]),
                    item.item_id,
                )

            db.flush()
            cursor = page["next_cursor"]
            if not page["has_more"]:
                return cursor

    @staticmethod
    def _upsert_accounts(db: Session, item: PlaidItem, accounts: list[dict]) -> set[str]:
        for data in accounts:
            balances = data.get("balances") or {}
            account = db.query(PlaidAccount).filter(PlaidAccount.account_id == data["account_id"]).first()
            if account is None:
                account = PlaidAccount(account_id=data["account_id"], item_id=item.item_id, user_id=item.user_id)
                db.add(account)
            account.item_id = item.item_id
            account.user_id = item.user_id
            account.name = data.get("name") or "Account"
            account.mask = data.get("mask")
            account.official_name = data.get("official_name")
            account.type = _to_str(data.get("type"))
            account.subtype = _to_str(data.get("subtype"))
            account.persistent_account_id = data.get("persistent_account_id")
            account.current_balance = _to_decimal(balances.get("current"))
            account.available_balance = _to_decimal(balances.get("available"))
            account.iso_currency_code = balances.get("iso_currency_code")
        db.flush()

        rows = db.query(PlaidAccount.account_id).filter(PlaidAccount.item_id == item.item_id).all()
        return {row.account_id for row in rows}

    @staticmethod
    def _upsert_transaction(db: Session, item: PlaidItem, data: dict, known_accounts: set[str]) -> bool:
        if data.get("account_id") not in known_accounts:
            logger.warning(
                "Skipping transaction %s for unknown account %s",
                data.get("transaction_id"),
                data.get("account_id"),
            )
            return False

        txn = db.get(PlaidTransaction, data["transaction_id"])
        if txn is None:
            txn = PlaidTransaction(transaction_id=data["transaction_id"])
            db.add(txn)

        category = data.get("personal_finance_category") or {}
        txn.account_id = data["account_id"]
        txn.user_id = item.user_id
        txn.amount = _to_decimal(data.get("amount")) or Decimal("0")
        txn.iso_currency_code = data.get("iso_currency_code")
        txn.unofficial_currency_code = data.get("unofficial_currency_code")
        txn.category_primary = category.get("primary")
        txn.category_detailed = category.get("detailed")
        txn.category_confidence = _to_str(category.get("confidence_level"))
        txn.check_number = data.get("check_number")
        txn.date = _to_date(data.get("date"))
        txn.datetime = _to_datetime(data.get("datetime"))
        txn.authorized_date = _to_date(data.get("authorized_date"))
        txn.authorized_datetime = _to_datetime(data.get("authorized_datetime"))
        txn.location = _json_safe(data.get("location"))
        txn.merchant_name = data.get("merchant_name")
        txn.payment_channel = _to_str(data.get("payment_channel"))
        txn.pending = bool(data.get("pending", False))
        txn.pending_transaction_id = data.get("pending_transaction_id")
        txn.transaction_code = _to_str(data.get("transaction_code"))
        txn.name = data.get("name")
        txn.original_description = data.get("original_description")
        txn.logo_url = data.get("logo_url")
        txn.website = data.get("website")
        txn.counterparties = _json_safe(data.get("counterparties"))
        txn.payment_meta = _json_safe(data.get("payment_meta"))
        txn.raw_data = _json_safe(data)
        return True


def run_initial_sync(item_id: str, plaid_client_factory) -> None:
    """Background entry point: sync one Item in its own database session."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        TransactionSyncService(plaid_client_factory()).sync_item(db, item_id)
    except Exception:
        logger.exception("Background sync failed for item %s", item_id)
        db.rollback()
    finally:
        db.close()
