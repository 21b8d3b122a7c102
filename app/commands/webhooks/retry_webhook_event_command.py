"""Command to reprocess a stored webhook event that failed earlier."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.commands.webhooks.process_webhook_command import ProcessWebhookCommand
from app.config import get_settings
from app.exceptions import ValidationError
from app.schemas.webhook import ProcessingResult
from app.services.webhook_event_service import WebhookEventService


class RetryWebhookEventCommand:
    """
    Re-run the pipeline on a stored raw payload against its existing audit row.
    Processed events and events that used up their retries are left alone, as
    are events whose stored payload failed validation.
    """

    def __init__(
        self, db: Session, process_command: Optional[ProcessWebhookCommand] = None
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self.process_command = process_command or ProcessWebhookCommand(db)
        self.events = self.process_command.events
        self.logger = logging.getLogger(__name__)

    def execute(self, event_id: UUID) -> Optional[ProcessingResult]:
        event = self.events.get_event(event_id)
        if event is None:
            self.logger.warning("Webhook event %s not found", event_id)
            return None
        if event.processed:
            self.logger.info("Webhook event %s already processed", event_id)
            return None
        if event.error_code == ValidationError.code:
            self.logger.warning(
                "Webhook event %s failed validation and is not retryable: %s",
                event_id,
                event.error_message,
            )
            return None
        if event.retry_count >= self.settings.webhook_max_retries:
            self.logger.warning(
                "Webhook event %s exhausted its %d retries",
                event_id,
                self.settings.webhook_max_retries,
            )
            return None
        self.logger.info(
            "Retrying webhook event %s (attempt %d)", event_id, event.retry_count + 1
        )
        return self.process_command.run(event.id, event.raw_payload)
