"""Tests for ContactService."""

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.models.contact import Contact
from app.schemas.webhook import ContactData
from app.services.contact_service import ContactService


@pytest.fixture
def service(db, persistence):
    return ContactService(db, persistence)


def test_resolve_creates_contact_with_defaults(db, service):
    contact, created = service.resolve(ContactData(phone="(11) 99999-9999", name="Ana"))
    assert created is True
    assert contact.phone == "+5511999999999"
    assert contact.status == "active"
    assert contact.tags == []
    assert contact.metadata_ == {}
    assert contact.last_interaction_at is not None


def test_resolve_same_external_id_is_idempotent(db, service):
    """Same platform id twice: one row, same internal id, incidental fields updated."""
    first, _ = service.resolve(
        ContactData(external_id="c-1", phone="+5511988887777", name="Ana")
    )
    second, created = service.resolve(
        ContactData(
            external_id="c-1",
            phone="+5511988887777",
            name="Ana Maria",
            email="ana@example.com",
        )
    )
    assert created is False
    assert second.id == first.id
    assert second.name == "Ana Maria"
    assert second.email == "ana@example.com"
    assert db.query(Contact).count() == 1


def test_resolve_merges_metadata(service):
    service.resolve(ContactData(external_id="c-1", phone="+5511988887777", metadata={"a": 1}))
    contact, _ = service.resolve(
        ContactData(external_id="c-1", phone="+5511988887777", metadata={"b": 2})
    )
    assert contact.metadata_ == {"a": 1, "b": 2}


def test_resolve_incoming_metadata_wins_on_conflict(service):
    service.resolve(ContactData(phone="+5511988887777", metadata={"a": 1, "b": 1}))
    contact, _ = service.resolve(ContactData(phone="+5511988887777", metadata={"b": 2}))
    assert contact.metadata_ == {"a": 1, "b": 2}


def test_resolve_null_fields_do_not_overwrite(service):
    service.resolve(ContactData(external_id="c-1", phone="+5511988887777", name="Ana"))
    contact, _ = service.resolve(ContactData(external_id="c-1", name=None))
    assert contact.name == "Ana"
    assert contact.phone == "+5511988887777"


def test_resolve_unions_tags(service):
    service.resolve(ContactData(phone="+5511988887777", tags=["vip", "lead"]))
    contact, _ = service.resolve(ContactData(phone="+5511988887777", tags=["lead", "new"]))
    assert contact.tags == ["vip", "lead", "new"]


def test_resolve_by_phone_when_no_external_id(db, service, setup_contact):
    contact, created = service.resolve(ContactData(phone=setup_contact.phone))
    assert created is False
    assert contact.id == setup_contact.id
    assert contact.tags == ["vip"]


def test_resolve_adopts_phone_only_contact(db, service):
    """A contact first seen without a platform id gets it on the next sighting."""
    first, _ = service.resolve(ContactData(phone="+5511977776666"))
    adopted, created = service.resolve(
        ContactData(external_id="c-9", phone="+5511977776666")
    )
    assert created is False
    assert adopted.id == first.id
    assert adopted.external_id == "c-9"
    assert db.query(Contact).count() == 1


def test_resolve_without_phone_or_external_id_raises(service):
    with pytest.raises(ValidationError, match="phone"):
        service.resolve(ContactData(name="Nobody"))


def test_resolve_unknown_external_id_without_phone_raises(service):
    with pytest.raises(ValidationError):
        service.resolve(ContactData(external_id="c-404"))


def test_add_and_remove_tags(service, setup_contact):
    contact = service.add_tags(setup_contact.id, ["lead", "vip"])
    assert contact.tags == ["vip", "lead"]
    contact = service.remove_tags(setup_contact.id, ["vip"])
    assert contact.tags == ["lead"]


def test_add_tags_missing_contact_raises(service):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        service.add_tags(uuid4(), ["vip"])


def test_get_contact_by_phone_normalizes(service, setup_contact):
    local = setup_contact.phone[3:]  # drop +55
    assert service.get_contact_by_phone(local).id == setup_contact.id
