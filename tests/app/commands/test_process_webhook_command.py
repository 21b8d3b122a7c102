"""Tests for ProcessWebhookCommand."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from app.commands.webhooks.process_webhook_command import ProcessWebhookCommand
from app.core.locks import KeyedLock
from app.exceptions import PersistenceError, ValidationError
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.customer_response_time import CustomerResponseTime
from app.models.message import Message
from app.models.organization import Channel, OrganizationMember, Sector
from app.models.pending_response import PendingResponse
from app.models.webhook_event import WebhookEvent
from app.services.response_time_service import ResponseTimeService
from tests.fixtures.webhook_fixtures import CUSTOMER_PHONE, message_payload


@pytest.fixture
def response_times(db, persistence):
    return ResponseTimeService(db, persistence, locks=KeyedLock())


@pytest.fixture
def command(db, persistence, response_times):
    return ProcessWebhookCommand(
        db, persistence=persistence, response_time_service=response_times
    )


def only_event(db):
    return db.query(WebhookEvent).one()


def umbler_payload(message_id="umb-msg-1", source="Contact", at="2026-10-19T10:00:00Z"):
    return {
        "Type": "Message",
        "EventDate": at,
        "Payload": {
            "Type": "Chat",
            "Content": {
                "Id": "umb-chat-1",
                "Open": True,
                "Private": False,
                "Waiting": True,
                "TotalUnread": 2,
                "Contact": {
                    "Id": "umb-contact-1",
                    "PhoneNumber": "+55 11 99999-9999",
                    "Name": "Maria",
                    "Tags": [{"Id": "t1", "Name": "vip"}],
                },
                "Channel": {"Id": "ch-1", "ChannelType": "WhatsappApi"},
                "OrganizationMember": {"Id": "agent-7"},
                "LastMessage": {
                    "Id": message_id,
                    "Source": source,
                    "MessageType": "Text",
                    "Content": "oi",
                    "EventAtUTC": at,
                    "MessageState": "Received",
                },
            },
        },
    }


def test_inbound_then_outbound_records_response_time(db, command, base_time):
    first = command.execute(message_payload("msg-1", "inbound", base_time), source_ip="10.0.0.1")
    second = command.execute(
        message_payload("msg-2", "outbound", base_time + timedelta(seconds=30), content="hi!")
    )

    assert first.processed and second.processed
    assert first.event_type == "message.received"
    assert second.event_type == "message.sent"
    assert first.conversation_id == second.conversation_id

    record = db.query(PendingResponse).one()
    assert record.is_pending is False
    assert record.response_time_ms == 30_000
    assert record.response_time_minutes == 0
    assert record.customer_message_external_id == "msg-1"
    assert record.agent_message_external_id == "msg-2"

    events = db.query(WebhookEvent).all()
    assert len(events) == 2
    assert all(e.processed for e in events)


def test_inbound_message_gets_first_touch_record(db, command, base_time):
    command.execute(message_payload("msg-1", "inbound", base_time))
    command.execute(message_payload("msg-2", "outbound", base_time + timedelta(minutes=1)))
    command.execute(message_payload("msg-3", "inbound", base_time + timedelta(minutes=4)))

    records = db.query(CustomerResponseTime).order_by(CustomerResponseTime.customer_message_time).all()
    assert [r.is_first_message for r in records] == [True, False]
    assert records[1].response_time_minutes == 3


def test_duplicate_delivery_is_idempotent(db, command, base_time):
    payload = message_payload("msg-1", "inbound", base_time)
    first = command.execute(payload)
    second = command.execute(payload)

    assert second.message_id == first.message_id
    assert db.query(Message).count() == 1
    assert db.query(Contact).count() == 1
    assert db.query(PendingResponse).count() == 1
    assert db.query(WebhookEvent).count() == 2


def test_missing_message_id_fails_without_counting_retry(db, command, base_time):
    with pytest.raises(ValidationError):
        command.execute(message_payload(None, "inbound", base_time))

    event = only_event(db)
    assert event.processed is False
    assert "externalId" in event.error_message
    assert event.retry_count == 0


def test_invalid_direction_is_a_validation_error(db, command, base_time):
    payload = message_payload("msg-1", "sideways", base_time)
    with pytest.raises(ValidationError, match="direction"):
        command.execute(payload)
    assert only_event(db).retry_count == 0


def test_unrecognized_payload_is_recorded_but_not_processed(db, command):
    result = command.execute({"foo": "bar"})

    assert result.processed is False
    assert result.event_type == "message.received"
    assert result.reason
    event = only_event(db)
    assert event.processed is False
    assert event.raw_payload == {"foo": "bar"}


def test_non_object_payload_is_not_processed(db, command):
    result = command.execute(["not", "an", "object"])
    assert result.processed is False
    assert only_event(db).raw_payload == ["not", "an", "object"]


def test_pairing_failure_does_not_block_processing(db, persistence, base_time):
    broken = MagicMock()
    broken.track_message.side_effect = RuntimeError("ledger unavailable")
    command = ProcessWebhookCommand(db, persistence=persistence, response_time_service=broken)

    result = command.execute(message_payload("msg-1", "inbound", base_time))

    assert result.processed is True
    assert db.query(Message).count() == 1
    assert only_event(db).processed is True
    assert db.query(CustomerResponseTime).count() == 1


def test_storage_failure_marks_event_and_counts_retry(db, persistence, response_times, base_time):
    resolver = MagicMock()
    resolver.resolve.side_effect = PersistenceError("database unavailable")
    command = ProcessWebhookCommand(
        db, persistence=persistence, resolver=resolver, response_time_service=response_times
    )

    with pytest.raises(PersistenceError):
        command.execute(message_payload("msg-1", "inbound", base_time))

    event = only_event(db)
    assert event.processed is False
    assert event.retry_count == 1
    assert event.error_message == "database unavailable"


def test_explicit_event_type_is_used(db, command, setup_conversation):
    result = command.execute(
        {
            "eventType": "conversation.closed",
            "conversation": {"externalId": setup_conversation.external_id},
        }
    )
    assert result.processed is True
    assert result.event_type == "conversation.closed"
    assert result.message_id is None
    db.refresh(setup_conversation)
    assert setup_conversation.status == "closed"


def test_contact_update_event(db, command):
    result = command.execute(
        {"contact": {"externalId": "c-1", "phone": CUSTOMER_PHONE, "tags": ["lead"]}}
    )
    assert result.event_type == "contact.updated"
    assert db.query(Contact).one().tags == ["lead"]


def test_umbler_payload_is_translated(db, command):
    result = command.execute(umbler_payload())

    assert result.processed is True
    assert result.event_type == "message.received"
    contact = db.query(Contact).one()
    assert contact.external_id == "umb-contact-1"
    assert contact.phone == CUSTOMER_PHONE
    assert contact.tags == ["vip"]
    message = db.query(Message).one()
    assert message.external_id == "umb-msg-1"
    assert message.direction == "inbound"
    assert message.status == "received"
    assert only_event(db).raw_payload["Type"] == "Message"


def test_umbler_agent_reply_closes_pending(db, command):
    command.execute(umbler_payload("umb-in", "Contact", "2026-10-19T10:00:00Z"))
    command.execute(umbler_payload("umb-out", "Member", "2026-10-19T10:06:00Z"))

    record = db.query(PendingResponse).one()
    assert record.response_time_minutes == 6


def test_umbler_bot_message_does_not_close_pending(db, command):
    command.execute(umbler_payload("umb-in", "Contact", "2026-10-19T10:00:00Z"))
    command.execute(umbler_payload("umb-bot", "Bot", "2026-10-19T10:00:05Z"))

    entry = db.query(PendingResponse).one()
    assert entry.is_pending is True
    assert entry.agent_message_external_id is None
    bot = db.query(Message).filter(Message.external_id == "umb-bot").one()
    assert bot.direction == "outbound"
    assert bot.sender == "bot"

    command.execute(umbler_payload("umb-out", "OrganizationMember", "2026-10-19T10:03:00Z"))

    db.refresh(entry)
    assert entry.is_pending is False
    assert entry.agent_message_external_id == "umb-out"
    assert entry.response_time_minutes == 3


def test_umbler_bot_message_is_not_a_first_touch_reply(db, command):
    command.execute(umbler_payload("umb-bot", "Bot", "2026-10-19T10:00:00Z"))
    command.execute(umbler_payload("umb-in", "Contact", "2026-10-19T10:02:00Z"))

    record = db.query(CustomerResponseTime).one()
    assert record.is_first_message is True
    assert record.agent_message_external_id is None


def test_umbler_organization_entities_are_linked(db, command):
    first = umbler_payload("umb-msg-1")
    first["Payload"]["Content"]["Channel"]["Name"] = "Vendas"
    first["Payload"]["Content"]["Sector"] = {"Id": "sec-1", "Name": "Suporte"}
    second = umbler_payload("umb-msg-2", at="2026-10-19T10:01:00Z")
    second["Payload"]["Content"]["Sector"] = {"Id": "sec-2", "Name": "Financeiro"}

    command.execute(first)
    command.execute(second)

    channel = db.query(Channel).one()
    assert channel.external_id == "ch-1"
    assert channel.channel_type == "WhatsappApi"
    assert channel.name == "Vendas"
    member = db.query(OrganizationMember).one()
    assert member.external_id == "agent-7"
    assert db.query(Sector).count() == 2

    conversation = db.query(Conversation).one()
    assert conversation.channel_id == channel.id
    assert conversation.organization_member_id == member.id
    assert conversation.sector_id == db.query(Sector).filter(Sector.external_id == "sec-2").one().id


def test_sender_event_type_is_kept(db, command, base_time):
    payload = message_payload("msg-1", "inbound", base_time, event="chat.typing")
    result = command.execute(payload)

    assert result.event_type == "message.received"
    event = only_event(db)
    assert event.event_type == "message.received"
    assert event.source_event_type == "chat.typing"


def test_failures_record_error_code(db, command, persistence, response_times, base_time):
    with pytest.raises(ValidationError):
        command.execute(message_payload(None, "inbound", base_time))
    assert only_event(db).error_code == "VALIDATION_ERROR"

    resolver = MagicMock()
    resolver.resolve.side_effect = PersistenceError("database unavailable")
    failing = ProcessWebhookCommand(
        db, persistence=persistence, resolver=resolver, response_time_service=response_times
    )
    with pytest.raises(PersistenceError):
        failing.execute(message_payload("msg-2", "inbound", base_time))
    latest = db.query(WebhookEvent).filter(WebhookEvent.error_code == "PERSISTENCE_ERROR").one()
    assert latest.retry_count == 1


def test_run_reuses_existing_event(db, command, setup_webhook_event):
    result = command.run(setup_webhook_event.id, setup_webhook_event.raw_payload)
    assert result.processed is True
    assert result.event_id == setup_webhook_event.id
    db.refresh(setup_webhook_event)
    assert setup_webhook_event.processed is True
    assert setup_webhook_event.error_message is None
    assert setup_webhook_event.error_code is None
    assert db.query(WebhookEvent).count() == 1
