"""
Audit trail of inbound webhook payloads.

A row is written before any processing so a crash mid-pipeline still leaves
an unprocessed event to retry. Outside production a failing audit write is
logged and skipped so local setups without full storage keep working.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.exceptions import PersistenceError, ValidationError
from app.models.webhook_event import WebhookEvent
from app.schemas.webhook import WebhookEventStats
from app.services.persistence_service import PersistenceService
from app.utils.time import utcnow

STATS_PERIODS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

logger = logging.getLogger(__name__)


class WebhookEventService:
    def __init__(
        self,
        db: Session,
        persistence: Optional[PersistenceService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)
        self.settings = settings or get_settings()

    def record(
        self,
        event_type: str,
        raw_payload: Any,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        source_event_type: Optional[str] = None,
    ) -> Optional[UUID]:
        """
        Append an audit row. Returns its id, or None if skipped outside production.

        source_event_type keeps the type tag the sender wrote, which can differ
        from the classified event_type or name a kind this service ignores.
        """
        try:
            event = self.persistence.insert_with_retry(
                WebhookEvent,
                {
                    "event_type": event_type,
                    "source_event_type": source_event_type,
                    "raw_payload": raw_payload,
                    "processed": False,
                    "retry_count": 0,
                    "source_ip": source_ip,
                    "user_agent": user_agent,
                },
            )
        except PersistenceError as exc:
            self._audit_failure("record webhook event", exc)
            return None
        logger.info(
            "Recorded webhook event %s (%s)",
            event.id,
            event_type,
            extra={"event_id": str(event.id), "event_type": event_type},
        )
        return event.id

    def mark_processed(self, event_id: Optional[UUID]) -> None:
        if event_id is None:
            return
        try:
            self.persistence.update_with_retry(
                WebhookEvent,
                {
                    "processed": True,
                    "processed_at": utcnow(),
                    "error_message": None,
                    "error_code": None,
                },
                {"id": event_id},
            )
        except PersistenceError as exc:
            self._audit_failure(f"mark webhook event {event_id} processed", exc)

    def mark_error(
        self,
        event_id: Optional[UUID],
        message: str,
        count_retry: bool = True,
        error_code: Optional[str] = None,
    ) -> None:
        """
        Store the error and leave the event unprocessed.

        count_retry increments retry_count; validation failures are recorded
        without counting against the retry budget. error_code is the failure
        kind, which decides whether a later retry is allowed.
        """
        if event_id is None:
            return
        event = self.get_event(event_id)
        if event is None:
            logger.warning("Cannot mark missing webhook event %s as failed", event_id)
            return
        patch = {"processed": False, "error_message": message, "error_code": error_code}
        if count_retry:
            patch["retry_count"] = (event.retry_count or 0) + 1
        try:
            self.persistence.update_with_retry(WebhookEvent, patch, {"id": event_id})
        except PersistenceError as exc:
            self._audit_failure(f"mark webhook event {event_id} failed", exc)

    def get_event(self, event_id: UUID) -> Optional[WebhookEvent]:
        return self.db.query(WebhookEvent).filter(WebhookEvent.id == event_id).first()

    def list_events(
        self,
        event_type: Optional[str] = None,
        processed: Optional[bool] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[WebhookEvent]:
        """Newest first."""
        q = self.db.query(WebhookEvent)
        if event_type is not None:
            q = q.filter(WebhookEvent.event_type == event_type)
        if processed is not None:
            q = q.filter(WebhookEvent.processed == processed)
        if since is not None:
            q = q.filter(WebhookEvent.created_at >= since)
        if until is not None:
            q = q.filter(WebhookEvent.created_at <= until)
        return (
            q.order_by(WebhookEvent.created_at.desc()).offset(skip).limit(limit).all()
        )

    def get_stats(self, period: str = "24h") -> WebhookEventStats:
        if period not in STATS_PERIODS:
            raise ValidationError(
                f"Unknown period {period!r}; expected one of {sorted(STATS_PERIODS)}"
            )
        since = utcnow() - STATS_PERIODS[period]
        window = self.db.query(WebhookEvent).filter(WebhookEvent.created_at >= since)
        total = window.count()
        processed = window.filter(WebhookEvent.processed.is_(True)).count()
        failed = window.filter(
            WebhookEvent.processed.is_(False), WebhookEvent.error_message.isnot(None)
        ).count()
        by_type = (
            self.db.query(WebhookEvent.event_type, func.count(WebhookEvent.id))
            .filter(WebhookEvent.created_at >= since)
            .group_by(WebhookEvent.event_type)
            .all()
        )
        return WebhookEventStats(
            period=period,
            since=since,
            total=total,
            processed=processed,
            failed=failed,
            events_by_type={event_type: count for event_type, count in by_type},
        )

    def _audit_failure(self, action: str, exc: PersistenceError) -> None:
        if self.settings.is_production:
            raise exc
        logger.error("Could not %s, continuing without audit: %s", action, exc)
