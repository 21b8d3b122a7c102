"""
Platform-side organization entities referenced by conversations.

Each row is keyed by the platform's own id and upserted whenever a webhook
mentions it.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Integer, String, Uuid

from app.db import Base, JSONType
from app.models.mixins import TimestampMixin


class Channel(Base, TimestampMixin):
    __tablename__ = "channels"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=False, unique=True)
    channel_type = Column(String(64), nullable=True)
    phone_number = Column(String(32), nullable=True)
    name = Column(String(255), nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)


class Sector(Base, TimestampMixin):
    __tablename__ = "sectors"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    is_default = Column(Boolean, nullable=True)
    order_position = Column(Integer, nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)


class OrganizationMember(Base, TimestampMixin):
    __tablename__ = "organization_members"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    external_id = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
