"""Database models."""

from messenger_webhooks.db.models.events import (
    Base,
    Message,
    MessageKind,
    RawEvent,
)

__all__ = [
    "Base",
    "Message",
    "MessageKind",
    "RawEvent",
]
