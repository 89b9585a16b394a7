"""Pydantic models for inbound Plaid webhooks.

LINK webhooks are parsed into a tagged union keyed on ``webhook_code``.
Codes this service does not act on become :class:`UnknownLinkEvent`
instead of failing validation, so new Plaid codes are acknowledged.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

LINK_WEBHOOK_TYPE = "LINK"


class WebhookPayloadError(ValueError):
    """The webhook body is not valid JSON or lacks required fields."""


class _LinkEventBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    webhook_type: Literal["LINK"] = LINK_WEBHOOK_TYPE
    link_token: str
    link_session_id: Optional[str] = None
    environment: Optional[str] = None


class ItemAddResultEvent(_LinkEventBase):
    """One Item was added during a Link session."""

    webhook_code: Literal["ITEM_ADD_RESULT"] = "ITEM_ADD_RESULT"
    public_token: str
    institution: Optional[dict[str, Any]] = None

    @property
    def institution_id(self) -> Optional[str]:
        return (self.institution or {}).get("institution_id")

    @property
    def institution_name(self) -> Optional[str]:
        return (self.institution or {}).get("name")


class SessionFinishedEvent(_LinkEventBase):
    """The user left Link; carries every public token of the session."""

    webhook_code: Literal["SESSION_FINISHED"] = "SESSION_FINISHED"
    status: str
    public_tokens: list[str] = Field(default_factory=list)

    @property
    def normalized_status(self) -> str:
        return self.status.strip().upper()

    @property
    def is_success(self) -> bool:
        return self.normalized_status == "SUCCESS"

    @property
    def is_error(self) -> bool:
        return self.normalized_status == "ERROR"


class HandoffEvent(_LinkEventBase):
    """Link handed control back to the client."""

    webhook_code: Literal["HANDOFF"] = "HANDOFF"


class UnknownLinkEvent(_LinkEventBase):
    """Any other LINK code (e.g. EVENTS); acknowledged without action."""

    webhook_code: str


LinkWebhook = Union[ItemAddResultEvent, SessionFinishedEvent, HandoffEvent, UnknownLinkEvent]

_LINK_EVENT_MODELS: dict[str, type[_LinkEventBase]] = {
    "ITEM_ADD_RESULT": ItemAddResultEvent,
    "SESSION_FINISHED": SessionFinishedEvent,
    "HANDOFF": HandoffEvent,
}


class WebhookEnvelope(BaseModel):
    """Fields common to every Plaid webhook."""

    model_config = ConfigDict(extra="allow")

    webhook_type: str
    webhook_code: str
    item_id: Optional[str] = None
    error: Optional[dict[str, Any]] = None
    environment: Optional[str] = None

    @property
    def is_link(self) -> bool:
        return self.webhook_type == LINK_WEBHOOK_TYPE

    @property
    def error_code(self) -> Optional[str]:
        return (self.error or {}).get("error_code")

    @property
    def error_message(self) -> Optional[str]:
        return (self.error or {}).get("error_message")


def parse_envelope(payload: Any) -> WebhookEnvelope:
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object")
    try:
        return WebhookEnvelope.model_validate(payload)
    except ValidationError as e:
        raise WebhookPayloadError(f"Invalid webhook payload: {e}") from e


def parse_link_webhook(payload: dict) -> LinkWebhook:
    """Parse a LINK webhook body into its event variant.

    Raises:
        WebhookPayloadError: Not a LINK webhook, or required fields missing.
    """
    if payload.get("webhook_type") != LINK_WEBHOOK_TYPE:
        raise WebhookPayloadError(f"Not a LINK webhook: {payload.get('webhook_type')!r}")
    model = _LINK_EVENT_MODELS.get(payload.get("webhook_code"), UnknownLinkEvent)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise WebhookPayloadError(f"Invalid {payload.get('webhook_code')} webhook: {e}") from e
