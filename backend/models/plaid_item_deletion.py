"""PlaidItemDeletion model - audit record of a user-initiated item removal."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class PlaidItemDeletion(Base):
    """One deletion, used to rate-limit how often a user can free a slot."""

    __tablename__ = "plaid_item_deletions"
    __table_args__ = (
        Index("ix_plaid_item_deletions_user_deleted_at", "user_id", "deleted_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    item_id = Column(String, nullable=False)
    institution_id = Column(String, nullable=True)
    institution_name = Column(String, nullable=True)
    deleted_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    reason = Column(String, nullable=True)

    user = relationship("User", back_populates="item_deletions")
