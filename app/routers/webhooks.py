"""
Webhook routes for the messaging platform.

The platform POSTs raw events here; the pipeline runs on the threadpool and
the response carries the processing result. Failed events can be listed and
retried.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.adapters.umbler import UmblerAdapter
from app.commands.webhooks.process_webhook_command import ProcessWebhookCommand
from app.commands.webhooks.retry_webhook_event_command import RetryWebhookEventCommand
from app.config import get_settings
from app.db import get_db
from app.models.webhook_event import WebhookEvent
from app.routers.utils.dependencies import get_webhook_event_by_id
from app.schemas.webhook import ProcessingResult, WebhookEventRead, WebhookEventStats
from app.services.webhook_event_service import WebhookEventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/messages", response_model=ProcessingResult)
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> ProcessingResult:
    """
    Receive a platform event. Verifies X-Webhook-Secret when WEBHOOK_SECRET is
    set, then records and processes the payload.
    """
    settings = get_settings()
    headers = dict(request.headers) if request.headers else {}
    if not UmblerAdapter().verify_webhook(settings.webhook_secret, headers):
        raise HTTPException(status_code=403, detail="Invalid webhook secret")
    try:
        body: Any = await request.json()
    except ValueError as e:
        logger.warning("Webhook invalid JSON: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON body") from e
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    source_ip = request.client.host if request.client else None
    # The pipeline does blocking database I/O and may sleep between retries.
    return await run_in_threadpool(
        ProcessWebhookCommand(db).execute,
        body,
        source_ip=source_ip,
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/events", response_model=dict)
def list_webhook_events(
    event_type: Optional[str] = None,
    processed: Optional[bool] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict:
    """List recorded webhook events, newest first."""
    events = WebhookEventService(db).list_events(
        event_type=event_type,
        processed=processed,
        since=since,
        until=until,
        skip=skip,
        limit=limit,
    )
    return {"items": [WebhookEventRead.model_validate(e) for e in events]}


@router.get("/stats", response_model=WebhookEventStats)
def webhook_stats(
    period: str = Query("24h"),
    db: Session = Depends(get_db),
) -> WebhookEventStats:
    return WebhookEventService(db).get_stats(period)


@router.post("/events/{id}/retry", response_model=ProcessingResult)
def retry_webhook_event(
    event: WebhookEvent = Depends(get_webhook_event_by_id),
    db: Session = Depends(get_db),
) -> ProcessingResult:
    """
    Reprocess a failed event. 409 when it is processed, out of retries or
    failed validation.
    """
    result = RetryWebhookEventCommand(db).execute(event.id)
    if result is None:
        raise HTTPException(
            status_code=409, detail="Webhook event is not eligible for retry"
        )
    return result
