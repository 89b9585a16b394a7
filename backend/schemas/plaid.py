"""Pydantic schemas for the Plaid Link API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class LinkTokenRequest(BaseModel):
    """Optional body for link-token creation.

    ``item_id`` requests update mode for re-authenticating that Item.
    """

    redirect_uri: Optional[str] = None
    item_id: Optional[str] = None


class LinkTokenResponse(BaseModel):
    link_token: str
    expiration: Optional[str] = None
    session_id: Optional[str] = None


class ExchangeTokenRequest(BaseModel):
    public_token: str
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None


class ExchangeTokenResponse(BaseModel):
    item_id: str
    institution_name: Optional[str] = None


class PlaidItemResponse(BaseModel):
    """A linked institution as shown to its owner."""

    item_id: str
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None
    status: str
    requires_reauth: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    consent_expires_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PlanLimitResponse(BaseModel):
    allowed: bool
    plan: Optional[str] = None
    item_count: int
    max_items: Optional[int] = None
    max_items_display: str
    reason: Optional[str] = None


class DeletionInfoResponse(BaseModel):
    can_delete: bool
    days_until_next: int
    cooldown_days: int
    last_deletion_at: Optional[str] = None


class ConnectedItemsResponse(BaseModel):
    items: list[PlaidItemResponse]
    plan: PlanLimitResponse
    deletion: DeletionInfoResponse


class DeleteItemResponse(BaseModel):
    status: str
    item_id: str
