"""PlaidWebhook model - receipt of an inbound ITEM/TRANSACTIONS/AUTH webhook."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class PlaidWebhook(Base):
    """A stored webhook delivery.

    Plaid legitimately repeats the same type/code (e.g. every
    SYNC_UPDATES_AVAILABLE), so receipts are never deduplicated.
    """

    __tablename__ = "plaid_webhooks"
    __table_args__ = (
        Index("ix_plaid_webhooks_item_processed", "item_id", "processed", "received_at"),
        Index("ix_plaid_webhooks_type_code_item", "webhook_type", "webhook_code", "item_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(String, nullable=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    webhook_type = Column(String, nullable=False)
    webhook_code = Column(String, nullable=False)
    error_code = Column(String, nullable=True)
    payload = Column(JSON, nullable=True)
    processed = Column(Boolean, default=False, nullable=False)
    processing_error = Column(JSON, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    received_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    processed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="webhooks")
