"""Conversation lookup and idempotent resolution."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.merge import merge_metadata, non_null_fields
from app.exceptions import DuplicateRecordError, ValidationError
from app.models.contact import Contact
from app.models.conversation import CLOSED_STATUSES, Conversation
from app.schemas.webhook import ConversationData
from app.services.persistence_service import PersistenceService
from app.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self, db: Session, persistence: Optional[PersistenceService] = None
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def get_conversation_by_external_id(
        self, external_id: str
    ) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.external_id == external_id)
            .first()
        )

    def find_open_for_contact(self, contact_id: UUID) -> Optional[Conversation]:
        """Most recently created open conversation for the contact."""
        return (
            self.db.query(Conversation)
            .filter(Conversation.contact_id == contact_id, Conversation.status == "open")
            .order_by(Conversation.created_at.desc())
            .first()
        )

    def resolve(
        self,
        data: ConversationData,
        contact: Optional[Contact],
        last_message_at: Optional[datetime] = None,
        links: Optional[Mapping[str, Optional[UUID]]] = None,
    ) -> Tuple[Conversation, bool]:
        """
        Find by external id, else the contact's open conversation; merge or
        create. Returns (conversation, created).

        links holds channel_id, sector_id and organization_member_id; null
        entries leave the stored reference alone.
        """
        links = non_null_fields(links or {})
        conversation = self._lookup(data.external_id, contact)
        if conversation is None:
            if contact is None:
                raise ValidationError(
                    "A contact is required to create a conversation"
                )
            try:
                return self._create(data, contact, last_message_at, links), True
            except DuplicateRecordError:
                conversation = self._lookup(data.external_id, contact)
                if conversation is None:
                    raise
                logger.info(
                    "Conversation %s inserted concurrently, merging", conversation.id
                )
        return self._merge(conversation, data, last_message_at, links), False

    def _lookup(
        self, external_id: Optional[str], contact: Optional[Contact]
    ) -> Optional[Conversation]:
        if external_id:
            return self.get_conversation_by_external_id(external_id)
        if contact is not None:
            return self.find_open_for_contact(contact.id)
        return None

    def _create(
        self,
        data: ConversationData,
        contact: Contact,
        last_message_at: Optional[datetime],
        links: Mapping[str, UUID],
    ) -> Conversation:
        status = data.status or "open"
        now = utcnow()
        conversation = self.persistence.insert_with_retry(
            Conversation,
            {
                "external_id": data.external_id,
                "contact_id": contact.id,
                "channel": data.channel or "whatsapp",
                "status": status,
                "assigned_agent_id": data.assigned_agent_id,
                "priority": data.priority or "normal",
                "closed_at": now if status in CLOSED_STATUSES else None,
                "last_message_at": last_message_at or data.last_message_at or now,
                "metadata_": merge_metadata({}, data.metadata),
                **links,
            },
        )
        logger.info(
            "Created conversation %s for contact %s", conversation.id, contact.id
        )
        return conversation

    def _merge(
        self,
        conversation: Conversation,
        data: ConversationData,
        last_message_at: Optional[datetime],
        links: Mapping[str, UUID],
    ) -> Conversation:
        patch = non_null_fields(
            {
                "status": data.status,
                "channel": data.channel,
                "assigned_agent_id": data.assigned_agent_id,
                "priority": data.priority,
            }
        )
        patch.update(links)
        if data.status in CLOSED_STATUSES and conversation.closed_at is None:
            patch["closed_at"] = utcnow()
        if data.metadata:
            patch["metadata_"] = merge_metadata(conversation.metadata_, data.metadata)
        latest = last_message_at or data.last_message_at
        current = ensure_utc(conversation.last_message_at)
        if latest is not None and (current is None or ensure_utc(latest) > current):
            patch["last_message_at"] = latest
        if not patch:
            return conversation
        return self.persistence.update_with_retry(
            Conversation, patch, {"id": conversation.id}
        )
