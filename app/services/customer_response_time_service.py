"""
First-touch response times.

For every customer message, measure the gap since the most recent earlier
agent message in the same conversation. A customer message with no agent
message before it is the first touch and carries no time.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.customer_response_time import CustomerResponseTime
from app.models.message import Message
from app.services.message_service import MessageService
from app.services.persistence_service import PersistenceService
from app.services.response_time_service import conversation_key_for
from app.utils.time import elapsed_ms, ensure_utc, ms_to_minutes

logger = logging.getLogger(__name__)


class CustomerResponseTimeService:
    def __init__(
        self,
        db: Session,
        persistence: Optional[PersistenceService] = None,
        message_service: Optional[MessageService] = None,
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)
        self.messages = message_service or MessageService(db, self.persistence)

    def get_by_message(self, message_external_id: str) -> Optional[CustomerResponseTime]:
        return (
            self.db.query(CustomerResponseTime)
            .filter(CustomerResponseTime.customer_message_external_id == message_external_id)
            .first()
        )

    def get_for_contact(self, contact_phone: str) -> List[CustomerResponseTime]:
        return (
            self.db.query(CustomerResponseTime)
            .filter(CustomerResponseTime.contact_phone == contact_phone)
            .order_by(CustomerResponseTime.customer_message_time.asc())
            .all()
        )

    def record_customer_message(
        self, message: Message, conversation: Conversation, contact: Contact
    ) -> Optional[CustomerResponseTime]:
        if message.direction != "inbound":
            return None
        existing = self.get_by_message(message.external_id)
        if existing is not None:
            return existing

        customer_time = ensure_utc(message.event_timestamp)
        values = {
            "conversation_key": conversation_key_for(conversation, contact),
            "conversation_external_id": conversation.external_id or str(conversation.id),
            "contact_phone": contact.phone,
            "contact_name": contact.name,
            "customer_message_time": customer_time,
            "customer_message_external_id": message.external_id,
            "is_first_message": True,
        }
        agent_message = self.messages.get_latest_message(
            conversation.id, "outbound", before=customer_time, agents_only=True
        )
        if agent_message is not None:
            gap_ms = elapsed_ms(agent_message.event_timestamp, customer_time)
            values.update(
                {
                    "is_first_message": False,
                    "agent_message_time": ensure_utc(agent_message.event_timestamp),
                    "agent_message_external_id": agent_message.external_id,
                    "response_time_ms": gap_ms,
                    "response_time_minutes": ms_to_minutes(gap_ms),
                }
            )
        record = self.persistence.insert_with_retry(CustomerResponseTime, values)
        if record.is_first_message:
            logger.info("First customer message in %s", values["conversation_key"])
        return record
