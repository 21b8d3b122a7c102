"""
Umbler Talk webhook adapter.

Native envelope: {"Type": "Message", "EventDate": ..., "Payload": {"Content": chat}}
where chat carries Contact, Channel, Sector, OrganizationMember, LastMessage
and Open. LastMessage.Source is "Contact" for customer messages and
"OrganizationMember" or "Member" for agents. Any other source
is platform automation and is tagged as a bot.
"""

from __future__ import annotations

from typing import Any, Optional

from app.adapters.base import BasePlatformAdapter

CUSTOMER_SOURCE = "Contact"
AGENT_SOURCES = frozenset({"OrganizationMember", "Member"})

_TYPE_EVENTS = {
    "contact": "contact.updated",
}


def _sender(source: str) -> str:
    if source == CUSTOMER_SOURCE:
        return "customer"
    if source in AGENT_SOURCES:
        return "agent"
    return "bot"


def _tag_names(tags: Optional[list[Any]]) -> list[str]:
    names = []
    for tag in tags or []:
        if isinstance(tag, dict):
            name = tag.get("Name") or tag.get("Id")
        else:
            name = tag
        if name:
            names.append(str(name))
    return names


class UmblerAdapter(BasePlatformAdapter):
    name = "umbler"

    def matches(self, raw_payload: Any) -> bool:
        if not isinstance(raw_payload, dict):
            return False
        payload = raw_payload.get("Payload")
        return "Type" in raw_payload and isinstance(payload, dict) and "Content" in payload

    def parse_webhook(self, raw_payload: dict[str, Any]) -> dict[str, Any]:
        content = (raw_payload.get("Payload") or {}).get("Content")
        if not isinstance(content, dict):
            raise ValueError("Umbler payload has no Payload.Content")
        contact = content.get("Contact") or {}
        channel = content.get("Channel") or {}
        member = content.get("OrganizationMember") or {}
        sector = content.get("Sector") or {}

        canonical: dict[str, Any] = {
            "contact": {
                "externalId": contact.get("Id"),
                "phone": contact.get("PhoneNumber"),
                "name": contact.get("Name"),
                "profilePicUrl": contact.get("ProfilePictureUrl"),
                "status": "blocked" if contact.get("IsBlocked") else None,
                "tags": _tag_names(contact.get("Tags")),
                "metadata": {
                    "contact_type": contact.get("ContactType"),
                    "group_identifier": contact.get("GroupIdentifier"),
                    "last_active_utc": contact.get("LastActiveUTC"),
                },
            },
            "conversation": {
                "externalId": content.get("Id"),
                "status": "open" if content.get("Open", True) else "closed",
                "channel": (channel.get("ChannelType") or "whatsapp").lower(),
                "assignedAgentId": member.get("Id"),
                "metadata": {
                    "channel_id": channel.get("Id"),
                    "channel_phone": channel.get("PhoneNumber"),
                    "is_private": content.get("Private"),
                    "is_waiting": content.get("Waiting"),
                    "total_unread": content.get("TotalUnread") or 0,
                },
            },
        }

        if channel.get("Id"):
            canonical["channel"] = {
                "externalId": str(channel["Id"]),
                "channelType": channel.get("ChannelType"),
                "phoneNumber": channel.get("PhoneNumber"),
                "name": channel.get("Name"),
            }
        if sector.get("Id"):
            canonical["sector"] = {
                "externalId": str(sector["Id"]),
                "name": sector.get("Name"),
                "isDefault": sector.get("Default"),
                "orderPosition": sector.get("Order"),
            }
        if member.get("Id"):
            canonical["organizationMember"] = {
                "externalId": str(member["Id"]),
                "name": member.get("Name"),
            }

        last_message = content.get("LastMessage")
        if isinstance(last_message, dict):
            source = last_message.get("Source") or CUSTOMER_SOURCE
            canonical["message"] = {
                "externalId": last_message.get("Id"),
                "conversationExternalId": content.get("Id"),
                "direction": "inbound" if source == CUSTOMER_SOURCE else "outbound",
                "sender": _sender(source),
                "type": (last_message.get("MessageType") or "text").lower(),
                "content": last_message.get("Content"),
                "eventTimestamp": last_message.get("EventAtUTC")
                or last_message.get("CreatedAtUTC")
                or raw_payload.get("EventDate"),
                "status": _message_status(last_message.get("MessageState")),
            }

        event = _TYPE_EVENTS.get(str(raw_payload.get("Type", "")).lower())
        if event is not None:
            canonical["eventType"] = event
        return canonical


def _message_status(state: Optional[str]) -> Optional[str]:
    if not state:
        return None
    return str(state).lower()
