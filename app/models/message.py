"""
Message model.

Immutable once created except for status, which only moves forward
(sent -> delivered -> read; failed from anywhere). sender is null when the
platform does not say who wrote an outbound message; such messages count as
agent replies.
"""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Message(Base, TimestampMixin):
    __tablename__ = "messages"

    __table_args__ = (
        Index(
            "ix_messages_conversation_direction_timestamp",
            "conversation_id",
            "direction",
            "event_timestamp",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=False, unique=True)
    conversation_id = Column(
        Uuid(as_uuid=True), ForeignKey("conversations.id"), nullable=False
    )
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("contacts.id"), nullable=False)
    direction = Column(String(16), nullable=False)  # 'inbound' | 'outbound'
    sender = Column(String(16), nullable=True)  # customer | agent | bot
    message_type = Column(String(32), nullable=False, default="text")
    content = Column(Text, nullable=True)
    media_url = Column(String(1024), nullable=True)
    media_filename = Column(String(255), nullable=True)
    media_mime_type = Column(String(128), nullable=True)
    media_size = Column(BigInteger, nullable=True)
    status = Column(String(16), nullable=False, default="sent")
    event_timestamp = Column(DateTime(timezone=True), nullable=False)
    raw_payload = Column(JSONType, nullable=True)

    conversation = relationship("Conversation", back_populates="messages")

    @property
    def is_agent_reply(self) -> bool:
        """Outbound and sent by a person; bot and automation replies are not."""
        return self.direction == "outbound" and self.sender in (None, "agent")
