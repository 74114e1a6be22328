"""Dual-path event storage: JSON audit files plus the relational store."""

from .event_store import EventStore
from .file_log import WebhookFileLog

__all__ = [
    "EventStore",
    "WebhookFileLog",
]
