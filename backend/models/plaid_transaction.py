"""PlaidTransaction model - a transaction under a PlaidAccount."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base


class PlaidTransaction(Base):
    """A transaction as returned by ``/transactions/sync``.

    Keyed by Plaid's ``transaction_id``.  Added and modified transactions
    are upserted; the full Plaid payload is kept in ``raw_data``.
    """

    __tablename__ = "plaid_transactions"

    transaction_id = Column(String, primary_key=True)
    account_id = Column(
        String,
        ForeignKey("plaid_accounts.account_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(28, 10), nullable=False)
    iso_currency_code = Column(String, nullable=True)
    unofficial_currency_code = Column(String, nullable=True)
    category_primary = Column(String, nullable=True)
    category_detailed = Column(String, nullable=True)
    category_confidence = Column(String, nullable=True)
    check_number = Column(String, nullable=True)
    date = Column(Date, nullable=False, index=True)
    datetime = Column(DateTime, nullable=True)
    authorized_date = Column(Date, nullable=True)
    authorized_datetime = Column(DateTime, nullable=True)
    location = Column(JSON, nullable=True)
    merchant_name = Column(String, nullable=True)
    payment_channel = Column(String, nullable=True)
    pending = Column(Boolean, default=False, nullable=False)
    pending_transaction_id = Column(String, nullable=True)
    transaction_code = Column(String, nullable=True)
    name = Column(String, nullable=True)
    original_description = Column(Text, nullable=True)
    logo_url = Column(String, nullable=True)
    website = Column(String, nullable=True)
    counterparties = Column(JSON, nullable=True)
    payment_meta = Column(JSON, nullable=True)
    raw_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    account = relationship("PlaidAccount", back_populates="transactions")
    user = relationship("User", back_populates="plaid_transactions")
