"""
Canonical inbound webhook payload and pipeline result shapes.

Payload fields arrive camelCase from the platform; snake_case is accepted too.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel

_PAYLOAD_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "allow",
}


class EventKind(str, Enum):
    MESSAGE_RECEIVED = "message.received"
    MESSAGE_SENT = "message.sent"
    CONVERSATION_UPDATED = "conversation.updated"
    CONVERSATION_CLOSED = "conversation.closed"
    CONTACT_UPDATED = "contact.updated"

    @property
    def is_message(self) -> bool:
        return self in (EventKind.MESSAGE_RECEIVED, EventKind.MESSAGE_SENT)


class ClassificationSource(str, Enum):
    EXPLICIT = "explicit"  # payload named a known kind
    INFERRED = "inferred"  # derived from envelope shape
    DEFAULT = "default"  # nothing recognizable; best guess


class ClassifiedEvent(BaseModel):
    kind: EventKind
    source: ClassificationSource
    explicit_type: Optional[str] = None

    @property
    def is_best_guess(self) -> bool:
        return self.source == ClassificationSource.DEFAULT


class MessageData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: Optional[str] = None
    conversation_external_id: Optional[str] = None
    direction: Literal["inbound", "outbound"]
    sender: Optional[Literal["customer", "agent", "bot"]] = None
    message_type: str = Field(
        default="text", validation_alias=AliasChoices("type", "messageType", "message_type")
    )
    content: Optional[str] = None
    event_timestamp: Optional[datetime] = None
    status: Optional[str] = None
    media_url: Optional[str] = None
    media_filename: Optional[str] = None
    media_mime_type: Optional[str] = None
    media_size: Optional[int] = None


class ContactData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    profile_pic_url: Optional[str] = None
    status: Optional[Literal["active", "blocked", "archived"]] = None
    tags: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None


class ChannelData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: str
    channel_type: Optional[str] = None
    phone_number: Optional[str] = None
    name: Optional[str] = None


class SectorData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: str
    name: Optional[str] = None
    is_default: Optional[bool] = None
    order_position: Optional[int] = None


class OrganizationMemberData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: str
    name: Optional[str] = None
    email: Optional[str] = None


class ConversationData(BaseModel):
    model_config = _PAYLOAD_CONFIG

    external_id: Optional[str] = None
    status: Optional[Literal["open", "pending", "resolved", "closed", "archived"]] = None
    channel: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    priority: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    last_message_at: Optional[datetime] = None


class WebhookPayload(BaseModel):
    model_config = _PAYLOAD_CONFIG

    event_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("eventType", "event", "event_type")
    )
    message: Optional[MessageData] = None
    contact: Optional[ContactData] = None
    conversation: Optional[ConversationData] = None
    channel: Optional[ChannelData] = None
    sector: Optional[SectorData] = None
    organization_member: Optional[OrganizationMemberData] = None

    @property
    def has_envelope(self) -> bool:
        return any(
            part is not None for part in (self.message, self.contact, self.conversation)
        )

    @property
    def conversation_external_id(self) -> Optional[str]:
        if self.conversation is not None and self.conversation.external_id:
            return self.conversation.external_id
        if self.message is not None:
            return self.message.conversation_external_id
        return None


class ProcessingResult(BaseModel):
    event_id: Optional[UUID] = None
    event_type: str
    contact_id: Optional[UUID] = None
    conversation_id: Optional[UUID] = None
    message_id: Optional[UUID] = None
    processed: bool
    reason: Optional[str] = None


class WebhookEventRead(BaseModel):
    id: UUID
    event_type: str
    source_event_type: Optional[str] = None
    processed: bool
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    retry_count: int
    source_ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WebhookEventStats(BaseModel):
    period: str
    since: datetime
    total: int
    processed: int
    failed: int
    events_by_type: dict[str, int]
