"""Pytest configuration and fixtures."""

import base64

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.billing import get_stripe_client
from api.plaid import _get_plaid_client, get_email_service, get_sync_trigger
from config import settings
from database import Base, _enable_sqlite_foreign_keys, get_db
from main import app
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    basic_subscription,
    link_session,
    other_user,
    user,
)
from tests.fixtures.mocks import (
    MockEmailService,
    MockPlaidClient,
    MockStripeClient,
    RecordingSyncTrigger,
    WebhookSigner,
)

TEST_ENCRYPTION_KEY = base64.urlsafe_b64encode(bytes(range(32))).decode()
TEST_JWT_SECRET = "test-jwt-secret-for-askmymoney-0123456789"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Deterministic secrets and pricing for every test."""
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setattr(settings, "AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(settings, "BASE_URL", "https://askmymoney.test")
    monkeypatch.setattr(settings, "PLAID_WEBHOOK_URL", "")
    monkeypatch.setattr(settings, "PLAID_VERIFY_WEBHOOKS", True)
    monkeypatch.setattr(settings, "ITEM_DELETION_COOLDOWN_DAYS", 30)
    monkeypatch.setattr(settings, "STRIPE_PRICE_BASIC", "price_basic")
    monkeypatch.setattr(settings, "STRIPE_PRICE_PRO", "price_pro")
    monkeypatch.setattr(settings, "STRIPE_PRICE_ENTERPRISE", "price_enterprise")
    monkeypatch.setattr(settings, "SMTP_SERVER", "")
    return settings


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="webhook_signer")
def webhook_signer_fixture():
    return WebhookSigner()


@pytest.fixture(name="mock_plaid")
def mock_plaid_fixture(webhook_signer):
    """Mock Plaid client that knows the signer's verification key."""
    return MockPlaidClient(webhook_keys={webhook_signer.kid: webhook_signer.jwk})


@pytest.fixture(name="mock_stripe")
def mock_stripe_fixture():
    return MockStripeClient()


@pytest.fixture(name="mock_email")
def mock_email_fixture():
    return MockEmailService()


@pytest.fixture(name="sync_trigger")
def sync_trigger_fixture():
    return RecordingSyncTrigger()


@pytest.fixture(name="client")
def client_fixture(db, mock_plaid, mock_stripe, mock_email, sync_trigger):
    """Create a test client with the test database and mocked providers."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[_get_plaid_client] = lambda: mock_plaid
    app.dependency_overrides[get_stripe_client] = lambda: mock_stripe
    app.dependency_overrides[get_email_service] = lambda: mock_email
    app.dependency_overrides[get_sync_trigger] = lambda: sync_trigger
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
