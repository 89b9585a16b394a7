"""LinkSession model - one user-initiated Plaid Link flow."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class LinkSessionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


_STATUS_RANK = {
    LinkSessionStatus.PENDING.value: 0,
    LinkSessionStatus.ACTIVE.value: 1,
    LinkSessionStatus.COMPLETED.value: 2,
    LinkSessionStatus.FAILED.value: 2,
}


class LinkSession(Base):
    """A Link flow, possibly adding several Items (Multi-Item Link).

    Created ``pending`` when the link token is issued and advanced by LINK
    webhooks: pending -> active -> completed | failed.  The status never
    moves backwards; use :meth:`advance_status` rather than assigning.
    """

    __tablename__ = "plaid_link_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    link_token = Column(String, nullable=False, index=True)
    link_session_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False, default=LinkSessionStatus.PENDING.value, index=True)
    public_tokens = Column(JSON, nullable=True)
    items_added = Column(Integer, nullable=False, default=0)
    # "metadata" is reserved on declarative classes
    session_metadata = Column("metadata", JSON, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="link_sessions")

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            LinkSessionStatus.COMPLETED.value,
            LinkSessionStatus.FAILED.value,
        )

    def advance_status(self, new_status: LinkSessionStatus) -> bool:
        """Move to ``new_status`` if that is forward progress.

        Returns True if the status changed.  Terminal sessions never change
        and no transition goes back to an earlier stage.
        """
        current = self.status or LinkSessionStatus.PENDING.value
        if self.is_terminal:
            return False
        if _STATUS_RANK[new_status.value] < _STATUS_RANK[current]:
            return False
        if new_status.value == current:
            return False
        self.status = new_status.value
        return True

    def merge_metadata(self, **values) -> None:
        """Merge keys into the JSON metadata (reassigns so the change is flushed)."""
        merged = dict(self.session_metadata or {})
        merged.update(values)
        self.session_metadata = merged
