"""
Message resolution and status transitions.

A message is keyed by its platform id. Re-delivery of a known message never
creates a second row; it can only move the status forward.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import DuplicateRecordError, NotFoundError, ValidationError
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message
from app.schemas.webhook import MessageData
from app.services.persistence_service import PersistenceService
from app.utils.time import ensure_utc, utcnow

FAILED = "failed"
STATUS_RANK = {"received": 0, "sent": 0, "delivered": 1, "read": 2}

logger = logging.getLogger(__name__)


def can_transition(current: Optional[str], new: Optional[str]) -> bool:
    """sent -> delivered -> read only move forward; failed is terminal."""
    if not new or new == current or current == FAILED:
        return False
    if new == FAILED:
        return True
    return STATUS_RANK.get(new, -1) > STATUS_RANK.get(current, -1)


class MessageService:
    def __init__(
        self, db: Session, persistence: Optional[PersistenceService] = None
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)

    def get_message(self, message_id: UUID) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def get_message_by_external_id(self, external_id: str) -> Optional[Message]:
        return self.db.query(Message).filter(Message.external_id == external_id).first()

    def get_latest_message(
        self,
        conversation_id: UUID,
        direction: str,
        before: Optional[datetime] = None,
        agents_only: bool = False,
    ) -> Optional[Message]:
        """
        Most recent message in the conversation with the given direction.
        agents_only drops outbound messages a bot sent.
        """
        q = self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.direction == direction,
        )
        if agents_only:
            q = q.filter(or_(Message.sender.is_(None), Message.sender == "agent"))
        if before is not None:
            q = q.filter(Message.event_timestamp < before)
        return q.order_by(Message.event_timestamp.desc()).first()

    def resolve(
        self,
        data: MessageData,
        conversation: Conversation,
        contact: Contact,
        raw_payload: Optional[Any] = None,
    ) -> Tuple[Message, bool]:
        """Returns (message, created). A known external id only advances status."""
        if not data.external_id:
            raise ValidationError("Message externalId is required")
        existing = self.get_message_by_external_id(data.external_id)
        if existing is not None:
            logger.info("Message %s already stored, skipping insert", data.external_id)
            return self._advance_status(existing, data.status), False
        try:
            return self._create(data, conversation, contact, raw_payload), True
        except DuplicateRecordError:
            existing = self.get_message_by_external_id(data.external_id)
            if existing is None:
                raise
            return self._advance_status(existing, data.status), False

    def update_message_status(self, external_id: str, status: str) -> Message:
        message = self.get_message_by_external_id(external_id)
        if message is None:
            raise NotFoundError(f"Message {external_id} not found")
        return self._advance_status(message, status)

    def _create(
        self,
        data: MessageData,
        conversation: Conversation,
        contact: Contact,
        raw_payload: Optional[Any],
    ) -> Message:
        default_status = "received" if data.direction == "inbound" else "sent"
        return self.persistence.insert_with_retry(
            Message,
            {
                "external_id": data.external_id,
                "conversation_id": conversation.id,
                "contact_id": contact.id,
                "direction": data.direction,
                "sender": data.sender,
                "message_type": data.message_type,
                "content": data.content,
                "media_url": data.media_url,
                "media_filename": data.media_filename,
                "media_mime_type": data.media_mime_type,
                "media_size": data.media_size,
                "status": data.status or default_status,
                "event_timestamp": ensure_utc(data.event_timestamp) or utcnow(),
                "raw_payload": raw_payload,
            },
        )

    def _advance_status(self, message: Message, status: Optional[str]) -> Message:
        if not can_transition(message.status, status):
            return message
        logger.info(
            "Message %s status %s -> %s", message.external_id, message.status, status
        )
        return self.persistence.update_with_retry(
            Message, {"status": status}, {"id": message.id}
        )
