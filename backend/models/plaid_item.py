"""PlaidItem model - one linked financial institution connection."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class ItemStatus(str, Enum):
    """Lifecycle of a PlaidItem.

    Items are usable as soon as the public token is exchanged (Plaid sends
    no "ready" webhook), so new rows start ``active``.  ``error`` and
    ``revoked`` are set by ITEM webhooks, ``deleted`` by a user-initiated
    removal.
    """

    ACTIVE = "active"
    ERROR = "error"
    REVOKED = "revoked"
    DELETED = "deleted"


class PlaidItem(Base):
    """A Plaid Item representing a linked financial institution.

    ``access_token`` holds the Fernet-encrypted credential; use
    :class:`services.encryption_service.EncryptionService` to read it.
    Rows are soft-deleted only (``status="deleted"`` plus ``deleted_at``).
    """

    __tablename__ = "plaid_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id = Column(String, unique=True, index=True, nullable=False)
    access_token = Column(Text, nullable=False)  # Encrypted
    institution_id = Column(String, nullable=True)
    institution_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default=ItemStatus.ACTIVE.value, index=True)
    consent_expires_at = Column(DateTime, nullable=True)
    transactions_cursor = Column(Text, nullable=True)
    error_code = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    last_webhook_at = Column(DateTime, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="plaid_items")
    accounts = relationship(
        "PlaidAccount",
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.status == ItemStatus.DELETED.value or self.deleted_at is not None

    @property
    def requires_reauth(self) -> bool:
        """True when the user must re-run Link in update mode."""
        return self.status == ItemStatus.ERROR.value
