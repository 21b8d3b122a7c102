"""
Resolves a webhook payload into stored contact, organization entities,
conversation and message.

Order matters: each downstream row references the upstream row's id. Any
failure aborts the rest; rows already written stay (their external ids make a
re-run idempotent).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.exceptions import ValidationError
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message
from app.schemas.webhook import ConversationData, EventKind, WebhookPayload
from app.services.contact_service import ContactService
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.services.organization_service import OrganizationService
from app.services.persistence_service import PersistenceService


@dataclass
class ResolutionResult:
    contact: Optional[Contact] = None
    conversation: Optional[Conversation] = None
    message: Optional[Message] = None
    message_created: bool = False


class EntityResolver:
    def __init__(
        self,
        db: Session,
        persistence: Optional[PersistenceService] = None,
        contact_service: Optional[ContactService] = None,
        conversation_service: Optional[ConversationService] = None,
        message_service: Optional[MessageService] = None,
        organization_service: Optional[OrganizationService] = None,
    ) -> None:
        self.db = db
        persistence = persistence or PersistenceService(db)
        self.contacts = contact_service or ContactService(db, persistence)
        self.conversations = conversation_service or ConversationService(
            db, persistence
        )
        self.messages = message_service or MessageService(db, persistence)
        self.organization = organization_service or OrganizationService(
            db, persistence
        )

    def resolve(
        self,
        payload: WebhookPayload,
        kind: EventKind,
        raw_payload: Optional[Any] = None,
    ) -> ResolutionResult:
        if not payload.has_envelope:
            raise ValidationError(
                "Payload carries no message, contact or conversation"
            )
        if kind.is_message and payload.message is None:
            raise ValidationError(f"{kind.value} event without a message")

        result = ResolutionResult()
        seen_at = payload.message.event_timestamp if payload.message else None

        if payload.contact is not None:
            result.contact, _ = self.contacts.resolve(payload.contact, seen_at)

        conversation_data = self._conversation_data(payload, kind)
        if conversation_data is not None:
            result.conversation, _ = self.conversations.resolve(
                conversation_data,
                result.contact,
                last_message_at=seen_at,
                links=self._organization_links(payload),
            )
            if result.contact is None:
                result.contact = self.contacts.get_contact(
                    result.conversation.contact_id
                )

        if payload.message is not None:
            result.message, result.message_created = self.messages.resolve(
                payload.message, result.conversation, result.contact, raw_payload
            )
        return result

    def _conversation_data(
        self, payload: WebhookPayload, kind: EventKind
    ) -> Optional[ConversationData]:
        if payload.conversation is None and payload.message is None:
            return None
        data = payload.conversation or ConversationData()
        update = {"external_id": payload.conversation_external_id}
        if kind == EventKind.CONVERSATION_CLOSED and data.status is None:
            update["status"] = "closed"
        return data.model_copy(update=update)

    def _organization_links(
        self, payload: WebhookPayload
    ) -> dict[str, Optional[UUID]]:
        channel = self.organization.resolve_channel(payload.channel)
        sector = self.organization.resolve_sector(payload.sector)
        member = self.organization.resolve_member(payload.organization_member)
        return {
            "channel_id": channel.id if channel else None,
            "sector_id": sector.id if sector else None,
            "organization_member_id": member.id if member else None,
        }
