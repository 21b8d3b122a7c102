"""
Read-only response-time statistics.

Aggregates run over answered pending-response rows (response records) whose
agent reply falls inside the lookback window. Averages and extremes are taken
over milliseconds and rounded to whole minutes once, at the end.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from app.config import Settings, get_settings
from app.core.phone import normalize_phone
from app.models.customer_response_time import CustomerResponseTime
from app.models.pending_response import PendingResponse
from app.schemas.response_time import (
    ContactCategory,
    ContactResponseTimeStats,
    PendingMessage,
    PendingSummary,
    RankingEntry,
    ResponseTimeDistribution,
    ResponseTimeRanking,
    ResponseTimeStats,
    SlowResponseAlert,
)
from app.utils.time import elapsed_ms, ensure_utc, ms_to_minutes, utcnow

MINUTE_MS = 60_000

# Upper bounds (inclusive) of the histogram buckets; anything above is very_slow.
DISTRIBUTION_BUCKETS = (
    ("very_fast", 2 * MINUTE_MS),
    ("fast", 5 * MINUTE_MS),
    ("normal", 15 * MINUTE_MS),
    ("slow", 60 * MINUTE_MS),
)

# Customer reply categories by average minutes (inclusive upper bounds).
CUSTOMER_CATEGORIES = (
    ("very_fast", 5),
    ("fast", 15),
    ("normal", 60),
    ("slow", 240),
)

logger = logging.getLogger(__name__)


def _minutes(ms: Optional[float]) -> Optional[int]:
    return None if ms is None else ms_to_minutes(ms)


class ResponseTimeStatsService:
    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._now = now or utcnow

    def overall_stats(self, days: Optional[int] = None) -> ResponseTimeStats:
        days = days or self.settings.stats_lookback_days
        stats = self._aggregate(self._answered_since(days), days)
        logger.info("Response time stats over %d days: %d responses", days, stats.total_responses)
        return stats

    def contact_stats(
        self, phone: str, days: Optional[int] = None
    ) -> ContactResponseTimeStats:
        days = days or self.settings.stats_lookback_days
        normalized = normalize_phone(phone, self.settings.default_country_code) or phone
        query = self._answered_since(days).filter(
            PendingResponse.contact_phone == normalized
        )
        stats = self._aggregate(query, days)
        latest = query.order_by(PendingResponse.agent_response_time.desc()).first()
        return ContactResponseTimeStats(
            **stats.model_dump(),
            contact_phone=normalized,
            contact_name=latest.contact_name if latest else None,
            last_response_time=ensure_utc(latest.agent_response_time) if latest else None,
        )

    def ranking(self, limit: int = 20, days: Optional[int] = None) -> ResponseTimeRanking:
        """Contacts by mean response time, slowest first."""
        days = days or self.settings.stats_lookback_days
        since = self._now() - timedelta(days=days)
        average = func.avg(PendingResponse.response_time_ms)
        rows = (
            self._answered()
            .filter(PendingResponse.agent_response_time >= since)
            .with_entities(
                PendingResponse.contact_phone,
                func.max(PendingResponse.contact_name),
                func.count(PendingResponse.id),
                average,
                func.min(PendingResponse.response_time_ms),
                func.max(PendingResponse.response_time_ms),
            )
            .group_by(PendingResponse.contact_phone)
            .order_by(average.desc())
            .limit(limit)
            .all()
        )
        items = [
            RankingEntry(
                contact_phone=phone,
                contact_name=name,
                total_responses=total,
                average_minutes=ms_to_minutes(avg_ms),
                fastest_minutes=ms_to_minutes(min_ms),
                slowest_minutes=ms_to_minutes(max_ms),
            )
            for phone, name, total, avg_ms, min_ms, max_ms in rows
        ]
        return ResponseTimeRanking(period_days=days, items=items)

    def pending_now(self, limit: int = 50) -> PendingSummary:
        """Messages still awaiting a reply, oldest first, with live waiting time."""
        now = self._now()
        urgent_ms = self.settings.pending_urgent_minutes * MINUTE_MS
        critical_ms = self.settings.pending_critical_minutes * MINUTE_MS
        pending = self.db.query(PendingResponse).filter(
            PendingResponse.is_pending.is_(True)
        )
        entries = (
            pending.order_by(PendingResponse.customer_message_time.asc())
            .limit(limit)
            .all()
        )
        items = []
        for entry in entries:
            waiting_ms = elapsed_ms(entry.customer_message_time, now)
            items.append(
                PendingMessage(
                    id=entry.id,
                    conversation_key=entry.conversation_key,
                    conversation_external_id=entry.conversation_external_id,
                    contact_phone=entry.contact_phone,
                    contact_name=entry.contact_name,
                    customer_message_time=ensure_utc(entry.customer_message_time),
                    customer_message_content=entry.customer_message_content,
                    waiting_time_ms=waiting_ms,
                    waiting_time_minutes=ms_to_minutes(waiting_ms),
                    is_urgent=waiting_ms > urgent_ms,
                    is_critical=waiting_ms > critical_ms,
                )
            )
        urgent_before = now - timedelta(milliseconds=urgent_ms)
        critical_before = now - timedelta(milliseconds=critical_ms)
        return PendingSummary(
            total_pending=pending.count(),
            urgent_count=pending.filter(
                PendingResponse.customer_message_time < urgent_before
            ).count(),
            critical_count=pending.filter(
                PendingResponse.customer_message_time < critical_before
            ).count(),
            items=items,
        )

    def slow_response_alerts(
        self, threshold_minutes: int = 60, days: int = 7, limit: int = 100
    ) -> list[SlowResponseAlert]:
        """Answered messages whose reply took longer than threshold_minutes."""
        entries = (
            self._answered_since(days)
            .filter(PendingResponse.response_time_ms > threshold_minutes * MINUTE_MS)
            .order_by(PendingResponse.response_time_ms.desc())
            .limit(limit)
            .all()
        )
        return [
            SlowResponseAlert(
                contact_phone=entry.contact_phone,
                contact_name=entry.contact_name,
                conversation_external_id=entry.conversation_external_id,
                customer_message_time=ensure_utc(entry.customer_message_time),
                agent_message_time=ensure_utc(entry.agent_response_time),
                response_time_minutes=entry.response_time_minutes,
            )
            for entry in entries
        ]

    def categorize_contact(self, phone: str) -> ContactCategory:
        """Bucket a contact by how fast they answer agents (first-touch records)."""
        normalized = normalize_phone(phone, self.settings.default_country_code) or phone
        records = self.db.query(CustomerResponseTime).filter(
            CustomerResponseTime.contact_phone == normalized
        )
        total, avg_ms = (
            records.filter(CustomerResponseTime.response_time_ms.isnot(None))
            .with_entities(
                func.count(CustomerResponseTime.id),
                func.avg(CustomerResponseTime.response_time_ms),
            )
            .one()
        )
        total_messages = records.count()
        if not total:
            return ContactCategory(
                contact_phone=normalized, category="new", total_messages=total_messages
            )
        average = ms_to_minutes(avg_ms)
        category = next(
            (
                name
                for name, bound in CUSTOMER_CATEGORIES
                if avg_ms <= bound * MINUTE_MS
            ),
            "very_slow",
        )
        return ContactCategory(
            contact_phone=normalized,
            category=category,
            average_minutes=average,
            total_messages=total_messages,
        )

    def _answered(self) -> Query:
        return self.db.query(PendingResponse).filter(
            PendingResponse.is_pending.is_(False),
            PendingResponse.response_time_ms.isnot(None),
        )

    def _answered_since(self, days: int) -> Query:
        since = self._now() - timedelta(days=days)
        return self._answered().filter(PendingResponse.agent_response_time >= since)

    def _aggregate(self, query: Query, days: int) -> ResponseTimeStats:
        ms = PendingResponse.response_time_ms
        bucket_columns = []
        lower = None
        for _, upper in DISTRIBUTION_BUCKETS:
            condition = ms <= upper if lower is None else (ms > lower) & (ms <= upper)
            bucket_columns.append(func.sum(case((condition, 1), else_=0)))
            lower = upper
        bucket_columns.append(func.sum(case((ms > lower, 1), else_=0)))

        row = query.with_entities(
            func.count(PendingResponse.id),
            func.avg(ms),
            func.min(ms),
            func.max(ms),
            *bucket_columns,
        ).one()
        total, avg_ms, min_ms, max_ms, *buckets = row
        names = [name for name, _ in DISTRIBUTION_BUCKETS] + ["very_slow"]
        return ResponseTimeStats(
            total_responses=total or 0,
            average_minutes=_minutes(avg_ms),
            fastest_minutes=_minutes(min_ms),
            slowest_minutes=_minutes(max_ms),
            distribution=ResponseTimeDistribution(
                **{name: int(count or 0) for name, count in zip(names, buckets)}
            ),
            period_days=days,
        )
