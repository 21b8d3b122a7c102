"""
PendingResponse model: the per-conversation awaiting-reply ledger.

At most one row per conversation_key has is_pending = true. A closed row with
response_time_minutes set is a response record (answered); a closed row
without it was superseded by a later customer message.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)

from app.db import Base
from app.models.mixins import TimestampMixin


class PendingResponse(Base, TimestampMixin):
    __tablename__ = "pending_responses"

    __table_args__ = (
        Index(
            "uq_pending_responses_one_pending_per_key",
            "conversation_key",
            unique=True,
            postgresql_where=text("is_pending"),
            sqlite_where=text("is_pending"),
        ),
        Index(
            "ix_pending_responses_key_customer_time",
            "conversation_key",
            "customer_message_time",
        ),
        Index("ix_pending_responses_phone", "contact_phone"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_key = Column(String(512), nullable=False)
    conversation_external_id = Column(String(255), nullable=False)
    contact_phone = Column(String(32), nullable=False)
    contact_name = Column(String(255), nullable=True)
    customer_message_time = Column(DateTime(timezone=True), nullable=False)
    customer_message_external_id = Column(String(255), nullable=True)
    customer_message_content = Column(Text, nullable=True)  # truncated
    is_pending = Column(Boolean, nullable=False, default=True)
    agent_response_time = Column(DateTime(timezone=True), nullable=True)
    agent_message_external_id = Column(String(255), nullable=True)
    response_time_ms = Column(BigInteger, nullable=True)
    response_time_minutes = Column(Integer, nullable=True)

    @property
    def is_answered(self) -> bool:
        return not self.is_pending and self.response_time_minutes is not None
