"""
Webhook event classification.

The platform does not always send an explicit type tag, so the kind is
inferred from which envelopes the payload carries. classify() never fails;
unrecognizable payloads fall through to message.received.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from app.schemas.webhook import ClassificationSource, ClassifiedEvent, EventKind

EXPLICIT_TYPE_FIELDS = ("event", "eventType", "event_type")
TERMINAL_CONVERSATION_STATUSES = frozenset({"closed", "resolved", "archived"})
DEFAULT_KIND = EventKind.MESSAGE_RECEIVED

_KNOWN_KINDS = {kind.value: kind for kind in EventKind}


def _explicit_type(payload: Mapping[str, Any]) -> Optional[str]:
    for field in EXPLICIT_TYPE_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _envelope(payload: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    value = payload.get(name)
    return value if isinstance(value, Mapping) else None


def classify_event(payload: Any) -> ClassifiedEvent:
    """Classify a raw payload and report how the kind was decided."""
    if not isinstance(payload, Mapping):
        return ClassifiedEvent(kind=DEFAULT_KIND, source=ClassificationSource.DEFAULT)

    explicit = _explicit_type(payload)
    if explicit is not None and explicit.lower() in _KNOWN_KINDS:
        return ClassifiedEvent(
            kind=_KNOWN_KINDS[explicit.lower()],
            source=ClassificationSource.EXPLICIT,
            explicit_type=explicit,
        )

    message = _envelope(payload, "message")
    if message is not None:
        outbound = str(message.get("direction", "")).lower() == "outbound"
        kind = EventKind.MESSAGE_SENT if outbound else EventKind.MESSAGE_RECEIVED
        return ClassifiedEvent(
            kind=kind, source=ClassificationSource.INFERRED, explicit_type=explicit
        )

    conversation = _envelope(payload, "conversation")
    if conversation is not None:
        status = str(conversation.get("status") or "").lower()
        kind = (
            EventKind.CONVERSATION_CLOSED
            if status in TERMINAL_CONVERSATION_STATUSES
            else EventKind.CONVERSATION_UPDATED
        )
        return ClassifiedEvent(
            kind=kind, source=ClassificationSource.INFERRED, explicit_type=explicit
        )

    if _envelope(payload, "contact") is not None:
        return ClassifiedEvent(
            kind=EventKind.CONTACT_UPDATED,
            source=ClassificationSource.INFERRED,
            explicit_type=explicit,
        )

    return ClassifiedEvent(
        kind=DEFAULT_KIND, source=ClassificationSource.DEFAULT, explicit_type=explicit
    )


def classify(payload: Any) -> EventKind:
    return classify_event(payload).kind
