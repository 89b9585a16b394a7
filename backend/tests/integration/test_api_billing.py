"""Integration tests for billing endpoints."""

import json

from api.billing import get_stripe_client
from main import app
from models import Subscription
from tests.fixtures import bearer
from tests.fixtures.mocks import MockStripeClient


def subscription_event(user_id: str = "user-1", plan: str = "basic", status: str = "active") -> dict:
    return {
        "id": "evt_1",
        "type": "customer.subscription.created",
        "data": {
            "object": {
                "id": "sub_123",
                "customer": "cus_test_1",
                "status": status,
                "metadata": {"user_id": user_id, "plan": plan},
                "current_period_start": 1767225600,
                "current_period_end": 1769904000,
            }
        },
    }


class TestCheckout:
    def test_returns_checkout_url(self, client, db, user, mock_stripe):
        response = client.post("/api/billing/checkout", headers=bearer(), json={"plan": "pro"})

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/c/1"}
        assert mock_stripe.checkout_sessions[0]["price_id"] == "price_pro"
        db.refresh(user)
        assert user.stripe_customer_id == "cus_test_1"

    def test_invalid_plan(self, client, user):
        response = client.post("/api/billing/checkout", headers=bearer(), json={"plan": "platinum"})
        assert response.status_code == 422

    def test_requires_auth(self, client):
        assert client.post("/api/billing/checkout", json={"plan": "pro"}).status_code == 401

    def test_stripe_down(self, client, user):
        app.dependency_overrides[get_stripe_client] = lambda: MockStripeClient(should_fail=True)
        response = client.post("/api/billing/checkout", headers=bearer(), json={"plan": "pro"})
        assert response.status_code == 502


class TestPortal:
    def test_no_customer(self, client, user):
        assert client.post("/api/billing/portal", headers=bearer()).status_code == 400

    def test_portal_url(self, client, db, user, mock_stripe):
        user.stripe_customer_id = "cus_123"
        db.commit()
        response = client.post(
            "/api/billing/portal", headers=bearer(), json={"return_url": "https://askmymoney.test/settings"}
        )
        assert response.status_code == 200
        assert mock_stripe.portal_sessions == [
            {"customer_id": "cus_123", "return_url": "https://askmymoney.test/settings"}
        ]


class TestStripeWebhook:
    def test_valid_event_creates_subscription(self, client, db, user, mock_email):
        response = client.post(
            "/api/billing/webhook",
            content=json.dumps(subscription_event()),
            headers={"Stripe-Signature": "valid"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "updated"}
        row = db.query(Subscription).one()
        assert row.plan == "basic"
        assert row.user_id == user.id
        assert mock_email.sent == [("subscription", "alice@example.com", "basic")]

    def test_invalid_signature(self, client, db, user):
        response = client.post(
            "/api/billing/webhook",
            content=json.dumps(subscription_event()),
            headers={"Stripe-Signature": "forged"},
        )
        assert response.status_code == 400
        assert db.query(Subscription).count() == 0

    def test_unhandled_event(self, client):
        response = client.post(
            "/api/billing/webhook",
            content=json.dumps({"type": "invoice.paid", "data": {"object": {}}}),
            headers={"Stripe-Signature": "valid"},
        )
        assert response.json()["outcome"] == "ignored"
