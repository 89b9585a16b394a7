"""Plaid webhook endpoint.

Status codes:
- 401: signature verification failed (nothing is touched)
- 400: body is not a parseable Plaid webhook
- 200: LINK webhooks, whatever the reconcile outcome, and processed
  ITEM/TRANSACTIONS/AUTH webhooks
- 500: unexpected errors, so Plaid redelivers
"""

import json
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from api.plaid import _get_plaid_client, get_link_service, get_sync_trigger
from config import settings
from database import get_db
from integrations.plaid_client import PlaidClient
from schemas.webhooks import WebhookPayloadError, parse_envelope, parse_link_webhook
from services.link_service import LinkService
from services.link_webhook_service import LinkWebhookService, ReconcileOutcome
from services.webhook_service import WebhookService
from services.webhook_verification import WebhookVerificationError, WebhookVerifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plaid", tags=["webhooks"])

# Every reconcile outcome is acknowledged; failures live on the session row.
RECONCILE_STATUS_CODES: dict[ReconcileOutcome, int] = {
    ReconcileOutcome.APPLIED: 200,
    ReconcileOutcome.SKIPPED: 200,
    ReconcileOutcome.IGNORED: 200,
    ReconcileOutcome.FAILED: 200,
}


async def get_raw_body(request: Request) -> bytes:
    return await request.body()


def get_webhook_verifier(
    client: PlaidClient = Depends(_get_plaid_client),
) -> WebhookVerifier | None:
    """``None`` when ``PLAID_VERIFY_WEBHOOKS`` is off (local sandbox only)."""
    if not settings.PLAID_VERIFY_WEBHOOKS:
        return None
    return WebhookVerifier(client)


@router.post("/webhook")
def plaid_webhook(
    body: bytes = Depends(get_raw_body),
    plaid_verification: str | None = Header(default=None, alias="Plaid-Verification"),
    db: Session = Depends(get_db),
    verifier: WebhookVerifier | None = Depends(get_webhook_verifier),
    link_service: LinkService = Depends(get_link_service),
    sync_trigger: Callable[[str], None] = Depends(get_sync_trigger),
):
    """Receive a Plaid webhook."""
    if verifier is not None:
        try:
            verifier.verify(body, plaid_verification)
        except WebhookVerificationError as e:
            logger.warning("Rejected Plaid webhook: %s", e)
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
    else:
        logger.debug("Webhook signature verification disabled")

    try:
        payload = json.loads(body)
        envelope = parse_envelope(payload)
    except (ValueError, WebhookPayloadError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Plaid webhook %s.%s (item=%s)", envelope.webhook_type, envelope.webhook_code, envelope.item_id
    )

    if envelope.is_link:
        try:
            event = parse_link_webhook(payload)
        except WebhookPayloadError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            result = LinkWebhookService(link_service).reconcile(db, event)
        except Exception:
            logger.exception("Unexpected error reconciling LINK webhook %s", envelope.webhook_code)
            raise HTTPException(status_code=500, detail="Webhook processing failed")
        if result.outcome is ReconcileOutcome.FAILED:
            logger.error("LINK %s failed for session %s: %s", result.webhook_code, result.session_id, result.detail)
        return _acknowledge(result.to_dict(), RECONCILE_STATUS_CODES[result.outcome])

    try:
        receipt = WebhookService(sync_trigger=sync_trigger).process_webhook(db, envelope, payload)
    except Exception:
        logger.exception("Error processing %s.%s webhook", envelope.webhook_type, envelope.webhook_code)
        raise HTTPException(status_code=500, detail="Webhook processing failed")
    return {"received": True, "webhook_id": receipt.id}


def _acknowledge(content: dict, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"received": True, **content})
