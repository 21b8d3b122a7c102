from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite round-trips, upstream payloads) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Milliseconds from start to end, clamped at zero."""
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0, int(delta.total_seconds() * 1000))


def ms_to_minutes(ms: int) -> int:
    """
    Nearest whole minute. Exact half minutes round to the even neighbour:
    30s gives 0, 90s and 150s both give 2. Thresholds and buckets compare
    milliseconds, never this value.
    """
    return round(ms / 60000)
