"""Plaid Link API endpoints.

Server side of the Plaid Link flow: link tokens, public-token exchange
and management of the caller's linked institutions (PlaidItems).
"""

import logging
from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from api.auth import get_current_user
from database import get_db
from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from models import PlaidItem, User
from schemas.plaid import (
    ConnectedItemsResponse,
    DeleteItemResponse,
    DeletionInfoResponse,
    ExchangeTokenRequest,
    ExchangeTokenResponse,
    LinkTokenRequest,
    LinkTokenResponse,
    PlaidItemResponse,
    PlanLimitResponse,
)
from services.email_service import EmailService
from services.item_service import (
    DeletionRateLimitError,
    ItemNotFoundError,
    ItemOwnershipError,
    ItemService,
)
from services.link_service import LinkService
from services.plan_limit_service import PlanLimitError, PlanLimitService
from services.transaction_sync_service import run_initial_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plaid", tags=["plaid"])


def _get_plaid_client() -> PlaidClient:
    """Dependency for injecting the Plaid client (overridable in tests)."""
    return PlaidClient()


def get_email_service() -> EmailService:
    return EmailService()


def get_sync_trigger(background_tasks: BackgroundTasks) -> Callable[[str], None]:
    """Dependency returning a callable that schedules an Item's transaction sync."""

    def trigger(item_id: str) -> None:
        background_tasks.add_task(run_initial_sync, item_id, PlaidClient)

    return trigger


def get_link_service(
    client: PlaidClient = Depends(_get_plaid_client),
    sync_trigger: Callable[[str], None] = Depends(get_sync_trigger),
    email_service: EmailService = Depends(get_email_service),
) -> LinkService:
    return LinkService(client, sync_trigger=sync_trigger, email_service=email_service)


def _require_configured(client: PlaidClient) -> None:
    if not client.is_configured():
        raise HTTPException(status_code=400, detail="Plaid is not configured")


def _provider_http_error(action: str, e: ProviderError) -> HTTPException:
    # Surface actionable hint for the most common error
    if e.error_code == "INVALID_API_KEYS":
        hint = (
            "Plaid rejected the credentials. Check that PLAID_ENVIRONMENT "
            "matches your keys (sandbox or production). "
            "Each environment has different secrets."
        )
        logger.error("Plaid INVALID_API_KEYS: %s", hint)
        return HTTPException(status_code=400, detail=hint)
    logger.error("Failed to %s: %s", action, e)
    return HTTPException(status_code=502, detail=f"Failed to {action}")


def _item_response(item: PlaidItem) -> PlaidItemResponse:
    return PlaidItemResponse(
        item_id=item.item_id,
        institution_id=item.institution_id,
        institution_name=item.institution_name,
        status=item.status,
        requires_reauth=item.requires_reauth,
        error_code=item.error_code,
        error_message=item.error_message,
        consent_expires_at=item.consent_expires_at,
        last_synced_at=item.last_synced_at,
        created_at=item.created_at,
    )


@router.post("/link-token", response_model=LinkTokenResponse)
def create_link_token(
    body: LinkTokenRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
    link_service: LinkService = Depends(get_link_service),
):
    """Create a Plaid Link token (update mode when ``item_id`` is given)."""
    _require_configured(client)
    body = body or LinkTokenRequest()
    try:
        if body.item_id:
            token = link_service.create_update_link_token(db, user.id, body.item_id)
        else:
            token = link_service.create_link_token(db, user.id, redirect_uri=body.redirect_uri)
    except PlanLimitError as e:
        raise HTTPException(status_code=403, detail=e.check.to_dict())
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        raise _provider_http_error("create link token", e)
    return LinkTokenResponse(**token)


@router.post("/exchange-token", response_model=ExchangeTokenResponse)
def exchange_token(
    body: ExchangeTokenRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
    link_service: LinkService = Depends(get_link_service),
):
    """Exchange a Plaid Link public_token and store the resulting Item."""
    _require_configured(client)
    try:
        item = link_service.exchange_public_token(
            db,
            user.id,
            body.public_token,
            institution_id=body.institution_id,
            institution_name=body.institution_name,
        )
    except PlanLimitError as e:
        raise HTTPException(status_code=403, detail=e.check.to_dict())
    except ItemOwnershipError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ProviderError as e:
        raise _provider_http_error("exchange token", e)

    return ExchangeTokenResponse(item_id=item.item_id, institution_name=item.institution_name)


@router.get("/items", response_model=ConnectedItemsResponse)
def list_items(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's linked Items with plan usage and deletion allowance."""
    connected = ItemService.get_connected_items(db, user.id)
    return ConnectedItemsResponse(
        items=[_item_response(item) for item in connected.items],
        plan=PlanLimitResponse(**connected.plan.to_dict()),
        deletion=DeletionInfoResponse(**connected.deletion.to_dict()),
    )


@router.delete("/items/{item_id}", response_model=DeleteItemResponse)
def remove_item(
    item_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: PlaidClient = Depends(_get_plaid_client),
):
    """Remove a linked Item (revokes the token with Plaid, then soft-deletes)."""
    try:
        ItemService.delete_item(db, user.id, item_id, client, reason="user_request")
    except ItemNotFoundError:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    except DeletionRateLimitError as e:
        raise HTTPException(status_code=429, detail={"message": str(e), **e.info.to_dict()})
    return DeleteItemResponse(status="ok", item_id=item_id)


@router.get("/plan-limit", response_model=PlanLimitResponse)
def get_plan_limit(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current plan, Item usage and whether another Item may be added."""
    return PlanLimitResponse(**PlanLimitService.check_can_add_item(db, user.id).to_dict())
