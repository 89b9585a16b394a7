"""PlaidAccount model - a financial account under a PlaidItem."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class PlaidAccount(Base):
    """An account (checking, credit card, brokerage...) reported by Plaid.

    Refreshed on every transaction sync; removed together with its Item.
    """

    __tablename__ = "plaid_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(
        String, ForeignKey("plaid_items.item_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    mask = Column(String, nullable=True)
    official_name = Column(String, nullable=True)
    current_balance = Column(Numeric(28, 10), nullable=True)
    available_balance = Column(Numeric(28, 10), nullable=True)
    iso_currency_code = Column(String, nullable=True)
    type = Column(String, nullable=True)
    subtype = Column(String, nullable=True)
    persistent_account_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    item = relationship("PlaidItem", back_populates="accounts")
    user = relationship("User", back_populates="plaid_accounts")
    transactions = relationship(
        "PlaidTransaction",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
