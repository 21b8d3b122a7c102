"""
CustomerResponseTime model: first-touch latency records.

One row per customer message, measured from the most recent prior agent
message in the conversation. No prior agent message means is_first_message.
"""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, Integer, String, Uuid

from app.db import Base
from app.models.mixins import TimestampMixin


class CustomerResponseTime(Base, TimestampMixin):
    __tablename__ = "customer_response_times"

    __table_args__ = (
        Index("ix_customer_response_times_phone_created", "contact_phone", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_key = Column(String(512), nullable=False)
    conversation_external_id = Column(String(255), nullable=False)
    contact_phone = Column(String(32), nullable=False)
    contact_name = Column(String(255), nullable=True)
    customer_message_time = Column(DateTime(timezone=True), nullable=False)
    customer_message_external_id = Column(String(255), nullable=True, unique=True)
    agent_message_time = Column(DateTime(timezone=True), nullable=True)
    agent_message_external_id = Column(String(255), nullable=True)
    response_time_ms = Column(BigInteger, nullable=True)
    response_time_minutes = Column(Integer, nullable=True)
    is_first_message = Column(Boolean, nullable=False, default=False)
