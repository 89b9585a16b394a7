"""LINK webhook reconciliation.

Applies ITEM_ADD_RESULT, SESSION_FINISHED and HANDOFF webhooks to the
matching :class:`models.LinkSession` under at-least-once, possibly
out-of-order delivery.  Every handler re-reads current state before
mutating: public tokens already exchanged are skipped, Items are
deduplicated by Plaid ``item_id`` and the plan limit is re-checked before
each exchange.

Handlers return a :class:`ReconcileResult` instead of raising.  A failure
inside a handler is recorded on the session (status ``failed`` plus the
error in its metadata) and still acknowledged, so Plaid does not retry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.orm import Session

from integrations.exceptions import ProviderError
from models import LinkSession, LinkSessionStatus
from schemas.webhooks import (
    HandoffEvent,
    ItemAddResultEvent,
    LinkWebhook,
    SessionFinishedEvent,
    UnknownLinkEvent,
)
from services.link_service import ItemAddOutcome, ItemAddResult, LinkService

logger = logging.getLogger(__name__)

PROCESSED_TOKENS_KEY = "processed_public_tokens"


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    webhook_code: str
    detail: str = ""
    session_id: str | None = None

    @classmethod
    def applied(cls, code: str, session_id: str, detail: str = "") -> "ReconcileResult":
        return cls(ReconcileOutcome.APPLIED, code, detail, session_id)

    @classmethod
    def skipped(cls, code: str, session_id: str, detail: str) -> "ReconcileResult":
        return cls(ReconcileOutcome.SKIPPED, code, detail, session_id)

    @classmethod
    def ignored(cls, code: str, detail: str, session_id: str | None = None) -> "ReconcileResult":
        return cls(ReconcileOutcome.IGNORED, code, detail, session_id)

    @classmethod
    def failed(cls, code: str, session_id: str, detail: str) -> "ReconcileResult":
        return cls(ReconcileOutcome.FAILED, code, detail, session_id)

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "webhook_code": self.webhook_code,
            "detail": self.detail,
            "session_id": self.session_id,
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LinkWebhookService:
    """Reconciles LINK webhooks against stored Link sessions."""

    def __init__(self, link_service: LinkService):
        self._link = link_service

    @staticmethod
    def find_session(db: Session, link_token: str) -> LinkSession | None:
        return (
            db.query(LinkSession)
            .filter(LinkSession.link_token == link_token)
            .order_by(LinkSession.created_at.desc())
            .first()
        )

    def reconcile(self, db: Session, event: LinkWebhook) -> ReconcileResult:
        code = event.webhook_code
        session = self.find_session(db, event.link_token)
        if session is None:
            logger.info("No link session for %s webhook (token expired or unknown), ignoring", code)
            return ReconcileResult.ignored(code, "unknown link token")

        if isinstance(event, UnknownLinkEvent):
            logger.info("Ignoring LINK webhook %s for session %s", code, session.id)
            return ReconcileResult.ignored(code, "unhandled webhook code", session.id)

        session_id = session.id
        try:
            if isinstance(event, ItemAddResultEvent):
                return self._handle_item_add_result(db, session, event)
            if isinstance(event, SessionFinishedEvent):
                return self._handle_session_finished(db, session, event)
            return self._handle_handoff(db, session, event)
        except Exception as e:
            logger.exception("Error handling %s for link session %s", code, session_id)
            return self._mark_failed(db, session_id, code, e)

    def _handle_item_add_result(
        self, db: Session, session: LinkSession, event: ItemAddResultEvent
    ) -> ReconcileResult:
        code = event.webhook_code
        if event.public_token in self._processed_tokens(session):
            return ReconcileResult.skipped(code, session.id, "public token already processed")

        result = self._link.add_item(
            db,
            session.user_id,
            event.public_token,
            institution_id=event.institution_id,
            institution_name=event.institution_name,
        )
        self._record_link_session_id(session, event.link_session_id)

        if not result.persisted:
            db.commit()
            return ReconcileResult.skipped(code, session.id, result.outcome.value)

        self._mark_token_processed(session, event.public_token)
        if result.outcome is ItemAddOutcome.ADDED:
            session.items_added = (session.items_added or 0) + 1
            session.merge_metadata(last_item_added=self._item_summary(result))
        session.advance_status(LinkSessionStatus.ACTIVE)
        db.commit()
        logger.info(
            "Link session %s: %s item %s", session.id, result.outcome.value, result.item.item_id
        )
        return ReconcileResult.applied(code, session.id, result.outcome.value)

    def _handle_session_finished(
        self, db: Session, session: LinkSession, event: SessionFinishedEvent
    ) -> ReconcileResult:
        code = event.webhook_code
        added = 0
        failed_tokens = 0
        stopped_at_limit = False

        if event.is_success and event.public_tokens:
            processed = self._processed_tokens(session)
            for token in event.public_tokens:
                if token in processed:
                    continue
                try:
                    result = self._link.add_item(db, session.user_id, token)
                except ProviderError as e:
                    logger.warning("Link session %s: could not replay public token: %s", session.id, e)
                    failed_tokens += 1
                    continue
                if not result.persisted:
                    logger.warning(
                        "Link session %s: stopping token replay (%s)", session.id, result.outcome.value
                    )
                    stopped_at_limit = True
                    break
                self._mark_token_processed(session, token)
                if result.outcome is ItemAddOutcome.ADDED:
                    added += 1
                    session.items_added = (session.items_added or 0) + 1
                    session.merge_metadata(last_item_added=self._item_summary(result))

        self._record_link_session_id(session, event.link_session_id)
        final = LinkSessionStatus.FAILED if event.is_error else LinkSessionStatus.COMPLETED
        changed = session.advance_status(final)
        now = _now()
        session.public_tokens = list(event.public_tokens)
        if changed:
            session.completed_at = now
        session.merge_metadata(session_status=event.normalized_status, finished_at=now.isoformat())
        db.commit()

        detail = f"{final.value}; {added} item(s) added during replay"
        if failed_tokens:
            detail += f"; {failed_tokens} token(s) could not be exchanged"
        if stopped_at_limit:
            detail += "; plan limit reached"
        logger.info("Link session %s finished: %s", session.id, detail)
        return ReconcileResult.applied(code, session.id, detail)

    def _handle_handoff(self, db: Session, session: LinkSession, event: HandoffEvent) -> ReconcileResult:
        self._record_link_session_id(session, event.link_session_id)
        session.advance_status(LinkSessionStatus.ACTIVE)
        db.commit()
        return ReconcileResult.applied(event.webhook_code, session.id)

    def _mark_failed(self, db: Session, session_id: str, code: str, error: Exception) -> ReconcileResult:
        db.rollback()
        session = db.get(LinkSession, session_id)
        if session is not None:
            session.advance_status(LinkSessionStatus.FAILED)
            session.merge_metadata(error=str(error), failed_webhook_code=code, failed_at=_now().isoformat())
            db.commit()
        return ReconcileResult.failed(code, session_id, str(error))

    @staticmethod
    def _record_link_session_id(session: LinkSession, link_session_id: str | None) -> None:
        if link_session_id and not session.link_session_id:
            session.link_session_id = link_session_id

    @staticmethod
    def _processed_tokens(session: LinkSession) -> set[str]:
        return set((session.session_metadata or {}).get(PROCESSED_TOKENS_KEY, []))

    @staticmethod
    def _mark_token_processed(session: LinkSession, token: str) -> None:
        tokens = list((session.session_metadata or {}).get(PROCESSED_TOKENS_KEY, []))
        if token not in tokens:
            tokens.append(token)
        session.merge_metadata(**{PROCESSED_TOKENS_KEY: tokens})

    @staticmethod
    def _item_summary(result: ItemAddResult) -> dict:
        item = result.item
        return {
            "item_id": item.item_id,
            "institution_id": item.institution_id,
            "institution_name": item.institution_name,
            "added_at": _now().isoformat(),
        }
