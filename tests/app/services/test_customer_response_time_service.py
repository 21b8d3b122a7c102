"""Tests for first-touch response times."""

from datetime import timedelta

import pytest

from app.models.customer_response_time import CustomerResponseTime
from app.schemas.webhook import MessageData
from app.services.customer_response_time_service import CustomerResponseTimeService
from app.services.message_service import MessageService


@pytest.fixture
def messages(db, persistence):
    return MessageService(db, persistence)


@pytest.fixture
def service(db, persistence, messages):
    return CustomerResponseTimeService(db, persistence, messages)


@pytest.fixture
def store(messages, setup_conversation, setup_contact):
    def _store(external_id, direction, at):
        message, _ = messages.resolve(
            MessageData(external_id=external_id, direction=direction, event_timestamp=at),
            setup_conversation,
            setup_contact,
        )
        return message

    return _store


def test_first_customer_message_has_no_time(service, store, setup_conversation, setup_contact, base_time):
    record = service.record_customer_message(
        store("in-1", "inbound", base_time), setup_conversation, setup_contact
    )
    assert record.is_first_message is True
    assert record.response_time_ms is None
    assert record.agent_message_external_id is None


def test_gap_since_latest_prior_agent_message(service, store, setup_conversation, setup_contact, base_time):
    store("out-1", "outbound", base_time)
    store("out-2", "outbound", base_time + timedelta(minutes=10))
    store("out-late", "outbound", base_time + timedelta(hours=1))
    inbound = store("in-1", "inbound", base_time + timedelta(minutes=25))

    record = service.record_customer_message(inbound, setup_conversation, setup_contact)

    assert record.is_first_message is False
    assert record.agent_message_external_id == "out-2"
    assert record.response_time_ms == 15 * 60_000
    assert record.response_time_minutes == 15
    assert record.conversation_key == f"{setup_conversation.external_id}:{setup_contact.phone}"


def test_outbound_message_is_ignored(service, store, setup_conversation, setup_contact, base_time):
    outbound = store("out-1", "outbound", base_time)
    assert service.record_customer_message(outbound, setup_conversation, setup_contact) is None


def test_same_message_recorded_once(db, service, store, setup_conversation, setup_contact, base_time):
    inbound = store("in-1", "inbound", base_time)
    first = service.record_customer_message(inbound, setup_conversation, setup_contact)
    again = service.record_customer_message(inbound, setup_conversation, setup_contact)
    assert again.id == first.id
    assert db.query(CustomerResponseTime).count() == 1


def test_get_for_contact_oldest_first(service, store, setup_conversation, setup_contact, base_time):
    later = store("in-2", "inbound", base_time + timedelta(minutes=5))
    earlier = store("in-1", "inbound", base_time)
    service.record_customer_message(later, setup_conversation, setup_contact)
    service.record_customer_message(earlier, setup_conversation, setup_contact)

    records = service.get_for_contact(setup_contact.phone)
    assert [r.customer_message_external_id for r in records] == ["in-1", "in-2"]
    assert service.get_by_message("in-2").id == records[1].id
