"""MCP tool server.

Exposes account-linking and billing tools to a conversational client over
streamable HTTP.  Requests carry the same bearer tokens as the REST API;
:class:`JWTTokenVerifier` turns them into a :class:`UserAccessToken` and
each tool reads the caller from the request's auth context.
"""

import logging
from contextlib import contextmanager

from mcp.server.auth.middleware.auth_context import get_access_token
from mcp.server.auth.provider import AccessToken
from mcp.server.auth.settings import AuthSettings
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from api.auth import TokenVerificationError, decode_access_token
from config import settings
from database import get_session_local
from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from integrations.stripe_client import StripeClient
from services.billing_service import BillingError, BillingService
from services.email_service import EmailService
from services.item_service import (
    DeletionRateLimitError,
    ItemNotFoundError,
    ItemService,
)
from services.link_service import LinkService
from services.plan_limit_service import PlanLimitError, PlanLimitService, format_limit
from services.user_service import UserService

logger = logging.getLogger(__name__)


class UserAccessToken(AccessToken):
    """Access token carrying the authenticated user's id."""

    user_id: str
    email: str | None = None
    name: str | None = None


class JWTTokenVerifier:
    """MCP token verifier backed by :func:`api.auth.decode_access_token`."""

    async def verify_token(self, token: str) -> UserAccessToken | None:
        try:
            principal = decode_access_token(token)
        except TokenVerificationError as e:
            logger.info("Rejected MCP bearer token: %s", e)
            return None
        return UserAccessToken(
            token=token,
            client_id=principal.client_id or "unknown",
            scopes=principal.scopes,
            expires_at=principal.expires_at,
            user_id=principal.user_id,
            email=principal.email,
            name=principal.name,
        )


mcp = FastMCP(
    "askmymoney",
    stateless_http=True,
    token_verifier=JWTTokenVerifier(),
    auth=AuthSettings(
        issuer_url=settings.BASE_URL,
        resource_server_url=settings.BASE_URL,
        required_scopes=[],
    ),
)


@contextmanager
def _db_session():
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_plaid_client() -> PlaidClient:
    return PlaidClient()


def get_stripe_client() -> StripeClient:
    return StripeClient()


def get_email_service() -> EmailService:
    return EmailService()


def _current_user(db):
    token = get_access_token()
    user_id = getattr(token, "user_id", None)
    if not user_id:
        raise ToolError("Authentication required")
    return UserService.get_or_create_user(db, user_id, getattr(token, "email", None), getattr(token, "name", None))


def _connect_url() -> str:
    return f"{settings.BASE_URL.rstrip('/')}/connect-bank"


def _pricing_url() -> str:
    return f"{settings.BASE_URL.rstrip('/')}/pricing"


def _item_dict(item) -> dict:
    return {
        "item_id": item.item_id,
        "institution_id": item.institution_id,
        "institution_name": item.institution_name,
        "status": item.status,
        "requires_reauth": item.requires_reauth,
        "error_code": item.error_code,
        "error_message": item.error_message,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


@mcp.tool()
def check_plan_limit() -> dict:
    """Show the user's plan, how many institutions are connected and how many more are allowed."""
    with _db_session() as db:
        user = _current_user(db)
        return PlanLimitService.check_can_add_item(db, user.id).to_dict()


@mcp.tool()
def connect_item() -> dict:
    """Start connecting a bank or card account.

    Returns a link to the connection page, or explains what is needed first
    (an active subscription or a free slot on the current plan).
    """
    with _db_session() as db:
        user = _current_user(db)
        check = PlanLimitService.check_can_add_item(db, user.id)
        if not check.has_plan:
            return {
                "status": "subscription_required",
                "message": "An active subscription is required to connect accounts.",
                "pricing_url": _pricing_url(),
            }
        if not check.allowed:
            return {
                "status": "limit_reached",
                "message": (
                    f"Your {check.plan} plan allows {format_limit(check.max_items)} connections "
                    f"and {check.item_count} are in use. Remove one or upgrade to add another."
                ),
                "plan": check.to_dict(),
                "pricing_url": _pricing_url(),
            }
        return {
            "status": "ready",
            "message": "Open the link to connect your institution.",
            "connect_url": _connect_url(),
            "plan": check.to_dict(),
        }


@mcp.tool()
def create_link_token(item_id: str | None = None) -> dict:
    """Create a Plaid Link token. Pass ``item_id`` to re-authenticate an existing connection."""
    with _db_session() as db:
        user = _current_user(db)
        service = LinkService(get_plaid_client(), email_service=get_email_service())
        try:
            if item_id:
                return service.create_update_link_token(db, user.id, item_id)
            return service.create_link_token(db, user.id)
        except PlanLimitError as e:
            raise ToolError(str(e))
        except ItemNotFoundError as e:
            raise ToolError(str(e))
        except ProviderError as e:
            logger.error("create_link_token failed: %s", e)
            raise ToolError("Could not start the connection flow. Please try again later.")


@mcp.tool()
def list_connected_items() -> dict:
    """List connected institutions with their status, plan usage and removal allowance."""
    with _db_session() as db:
        user = _current_user(db)
        connected = ItemService.get_connected_items(db, user.id)
        return {
            "items": [_item_dict(item) for item in connected.items],
            "plan": connected.plan.to_dict(),
            "deletion": connected.deletion.to_dict(),
        }


@mcp.tool()
def remove_item(item_id: str, reason: str | None = None) -> dict:
    """Disconnect an institution. Connections can be removed once per cooldown period."""
    with _db_session() as db:
        user = _current_user(db)
        try:
            item = ItemService.delete_item(db, user.id, item_id, get_plaid_client(), reason=reason)
        except ItemNotFoundError as e:
            raise ToolError(str(e))
        except DeletionRateLimitError as e:
            return {"status": "rate_limited", "message": str(e), **e.info.to_dict()}
        return {
            "status": "removed",
            "item_id": item.item_id,
            "institution_name": item.institution_name,
        }


@mcp.tool()
def manage_subscription(plan: str | None = None) -> dict:
    """Open subscription management.

    Existing customers get a billing-portal link.  Otherwise pass ``plan``
    (basic, pro or enterprise) to get a checkout link.
    """
    with _db_session() as db:
        user = _current_user(db)
        billing = BillingService(get_stripe_client(), email_service=get_email_service())
        try:
            if user.stripe_customer_id and not plan:
                return {"status": "portal", "url": billing.create_portal_session(db, user)}
            if not plan:
                return {
                    "status": "choose_plan",
                    "message": "Choose a plan: basic, pro or enterprise.",
                    "pricing_url": _pricing_url(),
                }
            return {"status": "checkout", "url": billing.create_checkout_session(db, user, plan)}
        except BillingError as e:
            raise ToolError(str(e))
        except ProviderError as e:
            logger.error("manage_subscription failed: %s", e)
            raise ToolError("Billing is temporarily unavailable. Please try again later.")
