"""
WebhookEvent model: audit row for every inbound webhook payload.

Written before processing starts. Only processed, processed_at,
error_message, error_code and retry_count change afterwards; rows are never
deleted here.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, Uuid

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class WebhookEvent(Base, TimestampMixin):
    __tablename__ = "webhook_events"

    __table_args__ = (
        Index("ix_webhook_events_processed_created", "processed", "created_at"),
        Index("ix_webhook_events_event_type", "event_type"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(String(64), nullable=False)
    source_event_type = Column(String(128), nullable=True)
    raw_payload = Column(JSONType, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    error_code = Column(String(64), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    source_ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
