"""Tests for webhook payload parsing."""

import pytest

from schemas.webhooks import (
    HandoffEvent,
    ItemAddResultEvent,
    SessionFinishedEvent,
    UnknownLinkEvent,
    WebhookPayloadError,
    parse_envelope,
    parse_link_webhook,
)


class TestParseLinkWebhook:
    def test_item_add_result(self):
        event = parse_link_webhook({
            "webhook_type": "LINK",
            "webhook_code": "ITEM_ADD_RESULT",
            "link_token": "link-1",
            "public_token": "public-1",
            "link_session_id": "sess-1",
        })
        assert isinstance(event, ItemAddResultEvent)
        assert event.public_token == "public-1"
        assert event.link_session_id == "sess-1"

    def test_session_finished_defaults(self):
        event = parse_link_webhook({
            "webhook_type": "LINK",
            "webhook_code": "SESSION_FINISHED",
            "link_token": "link-1",
            "status": " success ",
        })
        assert isinstance(event, SessionFinishedEvent)
        assert event.public_tokens == []
        assert event.normalized_status == "SUCCESS"
        assert event.is_success is True
        assert event.is_error is False

    def test_handoff(self):
        event = parse_link_webhook({"webhook_type": "LINK", "webhook_code": "HANDOFF", "link_token": "link-1"})
        assert isinstance(event, HandoffEvent)

    def test_unknown_code_is_kept(self):
        event = parse_link_webhook({
            "webhook_type": "LINK",
            "webhook_code": "EVENTS",
            "link_token": "link-1",
            "events": [{"event_name": "OPEN"}],
        })
        assert isinstance(event, UnknownLinkEvent)
        assert event.webhook_code == "EVENTS"

    def test_missing_public_token(self):
        with pytest.raises(WebhookPayloadError, match="ITEM_ADD_RESULT"):
            parse_link_webhook({"webhook_type": "LINK", "webhook_code": "ITEM_ADD_RESULT", "link_token": "link-1"})

    def test_missing_link_token(self):
        with pytest.raises(WebhookPayloadError):
            parse_link_webhook({"webhook_type": "LINK", "webhook_code": "HANDOFF"})

    def test_rejects_other_types(self):
        with pytest.raises(WebhookPayloadError, match="Not a LINK"):
            parse_link_webhook({"webhook_type": "ITEM", "webhook_code": "ERROR"})


class TestParseEnvelope:
    def test_item_error(self):
        envelope = parse_envelope({
            "webhook_type": "ITEM",
            "webhook_code": "ERROR",
            "item_id": "item-1",
            "error": {"error_code": "ITEM_LOGIN_REQUIRED", "error_message": "login required"},
        })
        assert envelope.is_link is False
        assert envelope.error_code == "ITEM_LOGIN_REQUIRED"
        assert envelope.error_message == "login required"

    def test_link_without_item(self):
        envelope = parse_envelope({"webhook_type": "LINK", "webhook_code": "HANDOFF", "link_token": "link-1"})
        assert envelope.is_link is True
        assert envelope.item_id is None
        assert envelope.error_code is None

    @pytest.mark.parametrize("payload", [[], "text", {"webhook_code": "ERROR"}])
    def test_invalid(self, payload):
        with pytest.raises(WebhookPayloadError):
            parse_envelope(payload)
