"""Fixtures for pending-response ledger rows."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.pending_response import PendingResponse


@pytest.fixture(scope="function")
def now():
    return datetime.now(timezone.utc)


@pytest.fixture(scope="function")
def create_response_record(db, now):
    """
    Factory for answered ledger rows: create_response_record(phone, seconds, ...).
    The agent reply lands answered_days_ago days before now.
    """

    def _create(
        phone,
        seconds,
        name=None,
        answered_days_ago=1,
        conversation_external_id="chat-stats",
    ):
        agent_time = now - timedelta(days=answered_days_ago)
        response_ms = int(seconds * 1000)
        record = PendingResponse(
            conversation_key=f"{conversation_external_id}:{phone}",
            conversation_external_id=conversation_external_id,
            contact_phone=phone,
            contact_name=name,
            customer_message_time=agent_time - timedelta(milliseconds=response_ms),
            is_pending=False,
            agent_response_time=agent_time,
            response_time_ms=response_ms,
            response_time_minutes=round(response_ms / 60000),
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _create


@pytest.fixture(scope="function")
def create_pending_entry(db, now):
    """Factory for still-pending rows: create_pending_entry(phone, waiting_minutes)."""

    def _create(phone, waiting_minutes, name=None, conversation_external_id=None):
        conversation_external_id = conversation_external_id or f"chat-{phone}"
        entry = PendingResponse(
            conversation_key=f"{conversation_external_id}:{phone}",
            conversation_external_id=conversation_external_id,
            contact_phone=phone,
            contact_name=name,
            customer_message_time=now - timedelta(minutes=waiting_minutes),
            customer_message_content="hello?",
            is_pending=True,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    return _create
