"""Webhook command handlers."""

from app.commands.webhooks.process_webhook_command import ProcessWebhookCommand
from app.commands.webhooks.retry_webhook_event_command import RetryWebhookEventCommand

__all__ = ["ProcessWebhookCommand", "RetryWebhookEventCommand"]
