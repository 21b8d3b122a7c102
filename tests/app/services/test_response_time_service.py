"""Tests for pending-response pairing."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from app.core.locks import KeyedLock
from app.exceptions import DuplicateRecordError
from app.models.pending_response import PendingResponse
from app.services.response_time_service import ResponseTimeService, conversation_key_for
from app.utils.time import ensure_utc

KEY = "chat-1:+5511999999999"


@pytest.fixture
def locks():
    return MagicMock(wraps=KeyedLock())


@pytest.fixture
def service(db, persistence, locks):
    return ResponseTimeService(db, persistence, locks=locks)


def customer(service, at, message_id="in-1", content="hello"):
    return service.record_customer_message(
        conversation_key=KEY,
        conversation_external_id="chat-1",
        contact_phone="+5511999999999",
        contact_name="Maria",
        message_time=at,
        message_external_id=message_id,
        content=content,
    )


def test_customer_message_becomes_pending(service, base_time):
    entry = customer(service, base_time)
    assert entry.is_pending is True
    assert ensure_utc(entry.customer_message_time) == base_time
    assert entry.response_time_ms is None
    assert [e.id for e in service.get_pending_entries(KEY)] == [entry.id]


def test_at_most_one_pending_per_key(service, base_time):
    for i in range(3):
        customer(service, base_time + timedelta(seconds=i), message_id=f"in-{i}")
    assert len(service.get_pending_entries(KEY)) == 1
    assert len(service.get_entries(KEY)) == 3


def test_agent_reply_closes_latest_customer_message(service, base_time):
    """Customer at T1 and T2, agent at T3: time measured from T2, T1 abandoned."""
    t1, t2, t3 = base_time, base_time + timedelta(minutes=2), base_time + timedelta(minutes=7)
    customer(service, t1, message_id="in-1")
    customer(service, t2, message_id="in-2")

    closed = service.record_agent_message(KEY, t3, agent_message_external_id="out-1")

    assert closed.customer_message_external_id == "in-2"
    assert closed.response_time_ms == 5 * 60_000
    assert closed.response_time_minutes == 5
    assert closed.agent_message_external_id == "out-1"
    assert closed.is_answered

    first, second = service.get_entries(KEY)
    assert first.is_pending is False
    assert first.response_time_minutes is None
    assert not first.is_answered
    assert second.id == closed.id
    assert service.get_pending_entries(KEY) == []


def test_agent_before_customer_clamps_to_zero(service, base_time):
    customer(service, base_time)
    closed = service.record_agent_message(KEY, base_time - timedelta(seconds=5))
    assert closed.response_time_ms == 0
    assert closed.response_time_minutes == 0


def test_agent_message_without_pending_is_noop(service, base_time):
    assert service.record_agent_message(KEY, base_time) is None


def test_second_agent_message_is_noop(service, base_time):
    customer(service, base_time)
    service.record_agent_message(KEY, base_time + timedelta(minutes=1))
    assert service.record_agent_message(KEY, base_time + timedelta(minutes=2)) is None


@pytest.mark.parametrize("seconds, minutes", [(30, 0), (45, 1), (90, 2), (150, 2), (29, 0)])
def test_minutes_rounded_to_nearest(service, base_time, seconds, minutes):
    customer(service, base_time)
    closed = service.record_agent_message(KEY, base_time + timedelta(seconds=seconds))
    assert closed.response_time_ms == seconds * 1000
    assert closed.response_time_minutes == minutes


def test_content_is_truncated(service, base_time):
    entry = customer(service, base_time, content="x" * 600)
    assert len(entry.customer_message_content) == 500


def test_transitions_hold_the_key_lock(service, locks, base_time):
    customer(service, base_time)
    service.record_agent_message(KEY, base_time + timedelta(minutes=1))
    assert [c.args for c in locks.hold.call_args_list] == [(KEY,), (KEY,)]


def test_lost_insert_race_supersedes_and_retries(db, service, base_time):
    real_insert = service.persistence.insert_with_retry
    calls = []

    def racing_insert(model, values, max_attempts=None):
        calls.append(values["customer_message_external_id"])
        if len(calls) == 1:
            # another writer sneaks in a pending row for the same key
            db.add(
                PendingResponse(
                    conversation_key=KEY,
                    conversation_external_id="chat-1",
                    contact_phone="+5511999999999",
                    customer_message_time=base_time - timedelta(minutes=1),
                    is_pending=True,
                )
            )
            db.commit()
            raise DuplicateRecordError("pending row exists")
        return real_insert(model, values, max_attempts)

    service.persistence.insert_with_retry = racing_insert

    entry = customer(service, base_time)

    assert calls == ["in-1", "in-1"]
    assert [e.id for e in service.get_pending_entries(KEY)] == [entry.id]


def test_track_message_routes_by_direction(
    db, service, setup_conversation, setup_contact, base_time
):
    from app.models.message import Message

    inbound = Message(
        external_id="in-1",
        conversation_id=setup_conversation.id,
        contact_id=setup_contact.id,
        direction="inbound",
        content="oi",
        event_timestamp=base_time,
    )
    outbound = Message(
        external_id="out-1",
        conversation_id=setup_conversation.id,
        contact_id=setup_contact.id,
        direction="outbound",
        event_timestamp=base_time + timedelta(minutes=3),
    )

    pending = service.track_message(inbound, setup_conversation, setup_contact)
    key = conversation_key_for(setup_conversation, setup_contact)
    assert pending.conversation_key == key
    assert key == f"{setup_conversation.external_id}:{setup_contact.phone}"

    closed = service.track_message(outbound, setup_conversation, setup_contact)
    assert closed.id == pending.id
    assert closed.response_time_minutes == 3


def test_bot_reply_leaves_entry_pending(
    db, service, setup_conversation, setup_contact, base_time
):
    from app.models.message import Message

    pending = service.track_message(
        Message(
            external_id="in-1",
            direction="inbound",
            sender="customer",
            event_timestamp=base_time,
        ),
        setup_conversation,
        setup_contact,
    )
    bot = Message(
        external_id="bot-1",
        direction="outbound",
        sender="bot",
        event_timestamp=base_time + timedelta(seconds=5),
    )
    assert service.track_message(bot, setup_conversation, setup_contact) is None
    db.refresh(pending)
    assert pending.is_pending is True

    agent = Message(
        external_id="out-1",
        direction="outbound",
        sender="agent",
        event_timestamp=base_time + timedelta(minutes=4),
    )
    closed = service.track_message(agent, setup_conversation, setup_contact)
    assert closed.id == pending.id
    assert closed.response_time_minutes == 4
