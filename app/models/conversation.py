"""Conversation model: one platform chat, owned by a contact."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin
from app.utils.time import utcnow

CLOSED_STATUSES = ("closed", "resolved")


class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    __table_args__ = (
        Index("ix_conversations_contact_status_created", "contact_id", "status", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=True, unique=True)
    contact_id = Column(Uuid(as_uuid=True), ForeignKey("contacts.id"), nullable=False)
    channel = Column(String(32), nullable=False, default="whatsapp")
    status = Column(String(16), nullable=False, default="open")  # open | pending | resolved | closed | archived
    assigned_agent_id = Column(String(255), nullable=True)
    channel_id = Column(Uuid(as_uuid=True), ForeignKey("channels.id"), nullable=True)
    sector_id = Column(Uuid(as_uuid=True), ForeignKey("sectors.id"), nullable=True)
    organization_member_id = Column(
        Uuid(as_uuid=True), ForeignKey("organization_members.id"), nullable=True
    )
    priority = Column(String(16), nullable=False, default="normal")
    closed_at = Column(DateTime(timezone=True), nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)

    contact = relationship("Contact", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation")
