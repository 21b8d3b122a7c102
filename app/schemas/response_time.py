"""Result shapes for response-time statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ResponseTimeDistribution(BaseModel):
    very_fast: int = 0  # <= 2 min
    fast: int = 0  # 2-5 min
    normal: int = 0  # 5-15 min
    slow: int = 0  # 15-60 min
    very_slow: int = 0  # > 60 min


class ResponseTimeStats(BaseModel):
    total_responses: int
    average_minutes: Optional[int] = None
    fastest_minutes: Optional[int] = None
    slowest_minutes: Optional[int] = None
    distribution: ResponseTimeDistribution
    period_days: int


class ContactResponseTimeStats(ResponseTimeStats):
    contact_phone: str
    contact_name: Optional[str] = None
    last_response_time: Optional[datetime] = None


class RankingEntry(BaseModel):
    contact_phone: str
    contact_name: Optional[str] = None
    average_minutes: int
    total_responses: int
    fastest_minutes: int
    slowest_minutes: int


class ResponseTimeRanking(BaseModel):
    period_days: int
    items: list[RankingEntry]


class PendingMessage(BaseModel):
    id: UUID
    conversation_key: str
    conversation_external_id: str
    contact_phone: str
    contact_name: Optional[str] = None
    customer_message_time: datetime
    customer_message_content: Optional[str] = None
    waiting_time_ms: int
    waiting_time_minutes: int
    is_urgent: bool
    is_critical: bool


class PendingSummary(BaseModel):
    total_pending: int
    urgent_count: int
    critical_count: int
    items: list[PendingMessage]


class SlowResponseAlert(BaseModel):
    contact_phone: str
    contact_name: Optional[str] = None
    conversation_external_id: str
    customer_message_time: datetime
    agent_message_time: Optional[datetime] = None
    response_time_minutes: int


class ContactCategory(BaseModel):
    contact_phone: str
    category: str  # new | very_fast | fast | normal | slow | very_slow
    average_minutes: Optional[int] = None
    total_messages: int
