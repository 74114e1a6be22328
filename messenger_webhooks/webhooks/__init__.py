"""
Messenger Webhook

Signature validation, subscription handshake, payload parsing and the
ingestion pipeline behind POST /webhook.
"""

from messenger_webhooks.webhooks.handler import MessengerWebhookHandler
from messenger_webhooks.webhooks.router import router as webhook_router

__all__ = [
    "webhook_router",
    "MessengerWebhookHandler",
]
