"""User model - an account holder authenticated by the external auth server."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class User(Base):
    """A user known to the auth server.

    Rows are created on first authenticated request.  Every other table
    hangs off ``users.id`` with ``ON DELETE CASCADE``, so removing a user
    removes all of their items, sessions and billing state.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, index=True, nullable=False)
    stripe_customer_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    subscriptions = relationship(
        "Subscription", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    plaid_items = relationship(
        "PlaidItem", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    plaid_accounts = relationship(
        "PlaidAccount", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    plaid_transactions = relationship(
        "PlaidTransaction", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    link_sessions = relationship(
        "LinkSession", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    webhooks = relationship(
        "PlaidWebhook", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    item_deletions = relationship(
        "PlaidItemDeletion", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
