"""
Agent response-time pairing.

Each conversation key has at most one pending customer message. A new
customer message supersedes the pending one (closed with no response time,
treated as abandoned) and becomes pending itself. An agent message closes the
pending entry and records the elapsed time, clamped at zero for clock skew or
late delivery. Both transitions run under a per-key lock; the partial unique
index on pending rows covers writers in other processes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.app_state import state
from app.core.conversation_key import build_conversation_key
from app.core.locks import KeyedLock
from app.exceptions import DuplicateRecordError
from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.message import Message
from app.models.pending_response import PendingResponse
from app.services.persistence_service import PersistenceService
from app.utils.time import elapsed_ms, ensure_utc, ms_to_minutes

logger = logging.getLogger(__name__)


def conversation_key_for(conversation: Conversation, contact: Contact) -> str:
    return build_conversation_key(
        conversation.external_id or str(conversation.id), contact.phone
    )


class ResponseTimeService:
    def __init__(
        self,
        db: Session,
        persistence: Optional[PersistenceService] = None,
        locks: Optional[KeyedLock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.persistence = persistence or PersistenceService(db)
        self.locks = locks or state.pending_locks
        self.settings = settings or get_settings()

    def get_pending_entries(self, conversation_key: str) -> List[PendingResponse]:
        return (
            self.db.query(PendingResponse)
            .filter(
                PendingResponse.conversation_key == conversation_key,
                PendingResponse.is_pending.is_(True),
            )
            .order_by(PendingResponse.customer_message_time.desc())
            .all()
        )

    def get_entries(self, conversation_key: str) -> List[PendingResponse]:
        """Every entry for the key, oldest customer message first."""
        return (
            self.db.query(PendingResponse)
            .filter(PendingResponse.conversation_key == conversation_key)
            .order_by(PendingResponse.customer_message_time.asc())
            .all()
        )

    def track_message(
        self, message: Message, conversation: Conversation, contact: Contact
    ) -> Optional[PendingResponse]:
        """Route a stored message to the customer or agent transition."""
        key = conversation_key_for(conversation, contact)
        if message.direction == "inbound":
            return self.record_customer_message(
                conversation_key=key,
                conversation_external_id=conversation.external_id or str(conversation.id),
                contact_phone=contact.phone,
                contact_name=contact.name,
                message_time=message.event_timestamp,
                message_external_id=message.external_id,
                content=message.content,
            )
        if message.is_agent_reply:
            return self.record_agent_message(
                conversation_key=key,
                agent_time=message.event_timestamp,
                agent_message_external_id=message.external_id,
            )
        logger.debug(
            "Message %s from %s does not close a pending entry",
            message.external_id,
            message.sender,
        )
        return None

    def record_customer_message(
        self,
        conversation_key: str,
        conversation_external_id: str,
        contact_phone: str,
        contact_name: Optional[str],
        message_time: datetime,
        message_external_id: Optional[str] = None,
        content: Optional[str] = None,
    ) -> PendingResponse:
        values = {
            "conversation_key": conversation_key,
            "conversation_external_id": conversation_external_id,
            "contact_phone": contact_phone,
            "contact_name": contact_name,
            "customer_message_time": ensure_utc(message_time),
            "customer_message_external_id": message_external_id,
            "customer_message_content": self._truncate(content),
            "is_pending": True,
        }
        with self.locks.hold(conversation_key):
            self._supersede_pending(conversation_key)
            try:
                entry = self.persistence.insert_with_retry(PendingResponse, values)
            except DuplicateRecordError:
                # Another process inserted a pending row between our close and insert.
                logger.warning(
                    "Concurrent pending entry for %s, superseding again",
                    conversation_key,
                    extra={"conversation_key": conversation_key},
                )
                self._supersede_pending(conversation_key)
                entry = self.persistence.insert_with_retry(PendingResponse, values)
        logger.info(
            "Customer message pending for %s",
            conversation_key,
            extra={"conversation_key": conversation_key},
        )
        return entry

    def record_agent_message(
        self,
        conversation_key: str,
        agent_time: datetime,
        agent_message_external_id: Optional[str] = None,
    ) -> Optional[PendingResponse]:
        """Close the pending entry; None when nothing was awaiting a reply."""
        with self.locks.hold(conversation_key):
            pending = self.get_pending_entries(conversation_key)
            if not pending:
                logger.warning(
                    "Agent message on %s with no pending customer message",
                    conversation_key,
                    extra={"conversation_key": conversation_key},
                )
                return None
            entry = pending[0]
            response_ms = elapsed_ms(entry.customer_message_time, agent_time)
            closed = self.persistence.update_with_retry(
                PendingResponse,
                {
                    "is_pending": False,
                    "agent_response_time": ensure_utc(agent_time),
                    "agent_message_external_id": agent_message_external_id,
                    "response_time_ms": response_ms,
                    "response_time_minutes": ms_to_minutes(response_ms),
                },
                {"id": entry.id},
            )
        logger.info(
            "Agent replied on %s after %d ms",
            conversation_key,
            response_ms,
            extra={"conversation_key": conversation_key},
        )
        return closed

    def _supersede_pending(self, conversation_key: str) -> int:
        superseded = 0
        for entry in self.get_pending_entries(conversation_key):
            self.persistence.update_with_retry(
                PendingResponse, {"is_pending": False}, {"id": entry.id}
            )
            superseded += 1
        if superseded:
            logger.info(
                "Superseded %d pending entr%s for %s",
                superseded,
                "y" if superseded == 1 else "ies",
                conversation_key,
                extra={"conversation_key": conversation_key},
            )
        return superseded

    def _truncate(self, content: Optional[str]) -> Optional[str]:
        if content is None:
            return None
        return content[: self.settings.message_content_max_length]
