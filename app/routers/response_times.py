"""Read-only response-time statistics routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.response_time import (
    ContactCategory,
    ContactResponseTimeStats,
    PendingSummary,
    ResponseTimeRanking,
    ResponseTimeStats,
)
from app.services.response_time_stats_service import ResponseTimeStatsService

router = APIRouter(
    prefix="/response-times",
    tags=["response-times"],
    responses={404: {"description": "Not found"}},
)


@router.get("/stats", response_model=ResponseTimeStats)
def get_overall_stats(
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
) -> ResponseTimeStats:
    return ResponseTimeStatsService(db).overall_stats(days)


@router.get("/contacts/{phone}", response_model=ContactResponseTimeStats)
def get_contact_stats(
    phone: str,
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
) -> ContactResponseTimeStats:
    return ResponseTimeStatsService(db).contact_stats(phone, days)


@router.get("/contacts/{phone}/category", response_model=ContactCategory)
def get_contact_category(
    phone: str,
    db: Session = Depends(get_db),
) -> ContactCategory:
    return ResponseTimeStatsService(db).categorize_contact(phone)


@router.get("/ranking", response_model=ResponseTimeRanking)
def get_ranking(
    limit: int = Query(20, ge=1, le=100),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: Session = Depends(get_db),
) -> ResponseTimeRanking:
    """Contacts with the slowest average response first."""
    return ResponseTimeStatsService(db).ranking(limit=limit, days=days)


@router.get("/pending", response_model=PendingSummary)
def get_pending(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> PendingSummary:
    return ResponseTimeStatsService(db).pending_now(limit)


@router.get("/alerts", response_model=dict)
def get_slow_response_alerts(
    threshold_minutes: int = Query(60, ge=1),
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
) -> dict:
    alerts = ResponseTimeStatsService(db).slow_response_alerts(
        threshold_minutes=threshold_minutes, days=days
    )
    return {"items": alerts}
