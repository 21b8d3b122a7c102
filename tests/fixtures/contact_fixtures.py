"""Fixtures for contact and conversation models."""

import pytest

from app.models.contact import Contact
from app.models.conversation import Conversation


@pytest.fixture(scope="function")
def setup_contact(db, faker):
    """A contact with a platform id, one tag and some metadata."""
    contact = Contact(
        external_id=faker.uuid4(),
        phone="+5511" + faker.numerify("9########"),
        name=faker.name(),
        email=faker.email(),
        status="active",
        tags=["vip"],
        metadata_={"source": "seed"},
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


@pytest.fixture(scope="function")
def setup_conversation(db, faker, setup_contact):
    """An open conversation owned by setup_contact."""
    conversation = Conversation(
        external_id="chat-" + faker.numerify("#####"),
        contact_id=setup_contact.id,
        channel="whatsapp",
        status="open",
        metadata_={},
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation
