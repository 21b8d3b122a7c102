from app.models.contact import Contact
from app.models.conversation import Conversation
from app.models.customer_response_time import CustomerResponseTime
from app.models.message import Message
from app.models.organization import Channel, OrganizationMember, Sector
from app.models.pending_response import PendingResponse
from app.models.webhook_event import WebhookEvent

__all__ = [
    "Channel",
    "Contact",
    "Conversation",
    "CustomerResponseTime",
    "Message",
    "OrganizationMember",
    "PendingResponse",
    "Sector",
    "WebhookEvent",
]
