from app.services.contact_service import ContactService
from app.services.conversation_service import ConversationService
from app.services.customer_response_time_service import CustomerResponseTimeService
from app.services.entity_resolver import EntityResolver
from app.services.message_service import MessageService
from app.services.persistence_service import PersistenceService
from app.services.response_time_service import ResponseTimeService
from app.services.response_time_stats_service import ResponseTimeStatsService
from app.services.webhook_event_service import WebhookEventService

__all__ = [
    "ContactService",
    "ConversationService",
    "CustomerResponseTimeService",
    "EntityResolver",
    "MessageService",
    "PersistenceService",
    "ResponseTimeService",
    "ResponseTimeStatsService",
    "WebhookEventService",
]
