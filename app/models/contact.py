"""Contact model: a customer on the messaging platform."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin
from app.utils.time import utcnow


class Contact(Base, TimestampMixin):
    __tablename__ = "contacts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=True, unique=True)
    phone = Column(String(32), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    profile_pic_url = Column(String(1024), nullable=True)
    status = Column(String(16), nullable=False, default="active")  # 'active' | 'blocked' | 'archived'
    tags = Column(JSONType, nullable=False, default=list)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    last_interaction_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversations = relationship("Conversation", back_populates="contact")
