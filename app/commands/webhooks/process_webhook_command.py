"""
Command to ingest one webhook payload end to end.

Records the raw payload, classifies it, resolves contact, conversation and
message, updates response-time tracking for new messages and marks the audit
row processed. Runs synchronously; the caller gets the result once every step
has finished.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.adapters.base import BasePlatformAdapter
from app.adapters.umbler import UmblerAdapter
from app.exceptions import NotFoundError, PersistenceError, ValidationError
from app.schemas.webhook import ClassifiedEvent, ProcessingResult, WebhookPayload
from app.services.customer_response_time_service import CustomerResponseTimeService
from app.services.entity_resolver import EntityResolver, ResolutionResult
from app.services.event_classifier import classify_event
from app.services.persistence_service import PersistenceService
from app.services.response_time_service import ResponseTimeService
from app.services.webhook_event_service import WebhookEventService


def default_adapters() -> list[BasePlatformAdapter]:
    return [UmblerAdapter()]


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "Invalid payload: " + "; ".join(parts)


class ProcessWebhookCommand:
    def __init__(
        self,
        db: Session,
        adapters: Optional[Sequence[BasePlatformAdapter]] = None,
        persistence: Optional[PersistenceService] = None,
        event_service: Optional[WebhookEventService] = None,
        resolver: Optional[EntityResolver] = None,
        response_time_service: Optional[ResponseTimeService] = None,
        customer_response_time_service: Optional[CustomerResponseTimeService] = None,
    ) -> None:
        self.db = db
        persistence = persistence or PersistenceService(db)
        self.adapters = list(adapters) if adapters is not None else default_adapters()
        self.events = event_service or WebhookEventService(db, persistence)
        self.resolver = resolver or EntityResolver(db, persistence)
        self.response_times = response_time_service or ResponseTimeService(
            db, persistence
        )
        self.customer_response_times = (
            customer_response_time_service
            or CustomerResponseTimeService(db, persistence)
        )
        self.logger = logging.getLogger(__name__)

    def execute(
        self,
        raw_payload: Any,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ProcessingResult:
        """
        Record and process a raw webhook payload.

        Raises ValidationError for malformed payloads and PersistenceError /
        NotFoundError when storage fails; the audit row is marked either way.
        """
        try:
            classified = classify_event(self._normalize(raw_payload))
        except ValidationError:
            classified = classify_event(raw_payload)
        event_id = self.events.record(
            classified.kind.value,
            raw_payload,
            source_ip,
            user_agent,
            source_event_type=classified.explicit_type,
        )
        return self.run(event_id, raw_payload)

    def run(self, event_id: Optional[UUID], raw_payload: Any) -> ProcessingResult:
        """Process a payload whose audit row (if any) already exists."""
        classified = classify_event(raw_payload)
        try:
            canonical = self._normalize(raw_payload)
            classified = classify_event(canonical)
            result = self._process(canonical, classified, raw_payload)
        except ValidationError as exc:
            self.events.mark_error(
                event_id, exc.message, count_retry=False, error_code=exc.code
            )
            if classified.is_best_guess:
                self.logger.warning(
                    "Unrecognized webhook payload left unprocessed: %s",
                    exc.message,
                    extra={"event_id": str(event_id) if event_id else None},
                )
                return ProcessingResult(
                    event_id=event_id,
                    event_type=classified.kind.value,
                    processed=False,
                    reason=exc.message,
                )
            raise
        except (PersistenceError, NotFoundError) as exc:
            self.events.mark_error(event_id, exc.message, error_code=exc.code)
            self.logger.error(
                "Webhook event %s failed: %s",
                event_id,
                exc.message,
                extra={"event_id": str(event_id) if event_id else None},
            )
            raise
        self.events.mark_processed(event_id)
        result.event_id = event_id
        return result

    def _normalize(self, raw_payload: Any) -> dict[str, Any]:
        if not isinstance(raw_payload, dict):
            raise ValidationError("Payload must be a JSON object")
        for adapter in self.adapters:
            if adapter.matches(raw_payload):
                try:
                    return adapter.parse_webhook(raw_payload)
                except (ValueError, KeyError, TypeError) as exc:
                    raise ValidationError(
                        f"Invalid {adapter.name} payload: {exc}"
                    ) from exc
        return raw_payload

    def _process(
        self, canonical: dict[str, Any], classified: ClassifiedEvent, raw_payload: Any
    ) -> ProcessingResult:
        try:
            payload = WebhookPayload.model_validate(canonical)
        except PydanticValidationError as exc:
            raise ValidationError(_describe(exc)) from exc

        resolution = self.resolver.resolve(payload, classified.kind, raw_payload)
        if resolution.message is not None and resolution.message_created:
            self._track_response_time(resolution)

        return ProcessingResult(
            event_type=classified.kind.value,
            contact_id=resolution.contact.id if resolution.contact else None,
            conversation_id=(
                resolution.conversation.id if resolution.conversation else None
            ),
            message_id=resolution.message.id if resolution.message else None,
            processed=True,
        )

    def _track_response_time(self, resolution: ResolutionResult) -> None:
        """Metrics never block message persistence: failures are logged only."""
        message = resolution.message
        try:
            self.response_times.track_message(
                message, resolution.conversation, resolution.contact
            )
        except Exception:
            self.db.rollback()
            self.logger.exception(
                "Response time pairing failed for message %s", message.external_id
            )
        if message.direction != "inbound":
            return
        try:
            self.customer_response_times.record_customer_message(
                message, resolution.conversation, resolution.contact
            )
        except Exception:
            self.db.rollback()
            self.logger.exception(
                "First-touch tracking failed for message %s", message.external_id
            )
