"""Pydantic schemas for billing endpoints."""

from typing import Literal, Optional

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    plan: Literal["basic", "pro", "enterprise"]


class PortalRequest(BaseModel):
    return_url: Optional[str] = None


class BillingRedirectResponse(BaseModel):
    url: str
