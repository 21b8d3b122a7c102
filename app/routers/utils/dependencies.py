from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.webhook_event import WebhookEvent
from app.services.webhook_event_service import WebhookEventService


def get_webhook_event_by_id(
    id: UUID,
    db: Session = Depends(get_db),
) -> WebhookEvent:
    """FastAPI dependency to get a webhook event by ID."""
    event = WebhookEventService(db).get_event(id)
    if event is None:
        raise HTTPException(status_code=404, detail="Webhook event not found")
    return event
