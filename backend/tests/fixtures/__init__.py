"""Test fixtures and sample data."""
import time
from datetime import datetime, timezone

import jwt
import pytest
from sqlalchemy.orm import Session

from config import settings
from models import ItemStatus, LinkSession, LinkSessionStatus, PlaidItem, Subscription, User
from services.encryption_service import EncryptionService

LINK_TOKEN = "link-sandbox-test-token"


def make_access_token(
    user_id: str = "user-1",
    email: str | None = "alice@example.com",
    name: str | None = "Alice",
    expires_in: int = 3600,
    **claims,
) -> str:
    """Mint a bearer token the way the auth server does."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + expires_in,
        "aud": settings.AUTH_JWT_AUDIENCE,
        "iss": settings.AUTH_JWT_ISSUER,
        **claims,
    }
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm="HS256")


def bearer(user_id: str = "user-1", **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_access_token(user_id, **kwargs)}"}


def create_subscription(
    db: Session,
    user: User,
    plan: str = "basic",
    status: str = "active",
    period_start: datetime | None = None,
    stripe_subscription_id: str | None = None,
) -> Subscription:
    subscription = Subscription(
        user_id=user.id,
        plan=plan,
        status=status,
        period_start=period_start or datetime(2026, 1, 1, tzinfo=timezone.utc),
        stripe_subscription_id=stripe_subscription_id,
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


def create_item(
    db: Session,
    user: User,
    item_id: str,
    status: str = ItemStatus.ACTIVE.value,
    access_token: str | None = None,
    institution_name: str = "First Platypus Bank",
    deleted_at: datetime | None = None,
) -> PlaidItem:
    item = PlaidItem(
        user_id=user.id,
        item_id=item_id,
        access_token=EncryptionService().encrypt(access_token or f"access-{item_id}"),
        institution_id="ins_109508",
        institution_name=institution_name,
        status=status,
        deleted_at=deleted_at,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def create_link_session(
    db: Session,
    user: User,
    link_token: str = LINK_TOKEN,
    status: str = LinkSessionStatus.PENDING.value,
    session_metadata: dict | None = None,
) -> LinkSession:
    session = LinkSession(
        user_id=user.id,
        link_token=link_token,
        status=status,
        session_metadata=session_metadata,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


@pytest.fixture
def user(db: Session) -> User:
    user = User(id="user-1", email="alice@example.com", name="Alice")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    user = User(id="user-2", email="bob@example.com", name="Bob")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def basic_subscription(db: Session, user: User) -> Subscription:
    return create_subscription(db, user, plan="basic")


@pytest.fixture
def link_session(db: Session, user: User) -> LinkSession:
    return create_link_session(db, user)
