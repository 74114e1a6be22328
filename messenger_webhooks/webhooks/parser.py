"""
Messenger Event Parser

Walks the loosely typed Messenger webhook payload and turns it into
normalized records. Nothing here touches storage; the handler and the
JSON importer decide what gets persisted.

Payload shape:
    {"object": "page", "entry": [
        {"id": ..., "time": ..., "changes": [{"field": "about", "value": ...}]},
        {"id": ..., "time": ..., "messaging": [{"sender": {"id": ...},
                                                "recipient": {"id": ...},
                                                "timestamp": 1700000000000,
                                                "message": {...}}]}
    ]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union

from messenger_webhooks.db.models import Message, MessageKind
from messenger_webhooks.kernel.time import from_epoch_millis

UNKNOWN = "unknown"


class EntryKind(str, Enum):
    FIELD_CHANGES = "changes"
    MESSAGING = "messaging"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FieldChange:
    """A page field update (about, name, picture, ...)."""

    field: str
    value: str


@dataclass(frozen=True)
class MessageVariant:
    text: str | None = None
    mid: str | None = None
    is_echo: bool = False
    app_id: str | None = None

    kind = MessageKind.MESSAGE


@dataclass(frozen=True)
class PostbackVariant:
    payload: str | None = None

    kind = MessageKind.POSTBACK


@dataclass(frozen=True)
class DeliveryVariant:
    watermark: int | None = None

    kind = MessageKind.DELIVERY


@dataclass(frozen=True)
class ReadVariant:
    kind = MessageKind.READ


MessagingVariant = Union[MessageVariant, PostbackVariant, DeliveryVariant, ReadVariant]


@dataclass(frozen=True)
class ParsedMessage:
    """One messaging sub-event plus the fields every variant shares."""

    sender_id: str
    recipient_id: str
    timestamp: datetime
    variant: MessagingVariant

    @property
    def kind(self) -> str:
        return self.variant.kind

    def to_model(self) -> Message:
        """Build an unsaved Message row; the store stamps parent id and created_at."""
        message = Message(
            sender_id=self.sender_id,
            recipient_id=self.recipient_id,
            timestamp=self.timestamp,
            kind=self.kind,
            is_echo=False,
            responded=False,
        )
        variant = self.variant
        if isinstance(variant, MessageVariant):
            message.text = variant.text
            message.message_id = variant.mid
            message.is_echo = variant.is_echo
            message.app_id = variant.app_id if variant.is_echo else None
        elif isinstance(variant, PostbackVariant):
            message.postback_payload = variant.payload
        elif isinstance(variant, DeliveryVariant):
            message.delivery_watermark = variant.watermark
        return message


# =============================================================================
# Tolerant field access
# =============================================================================


def _get_str(obj: Any, key: str) -> str | None:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _get_int(obj: Any, key: str) -> int | None:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    # bool is an int subclass; JSON true is not a number here
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _get_int64(obj: Any, key: str) -> int | None:
    """Like _get_int, but values outside a signed 64-bit column count as absent."""
    value = _get_int(obj, key)
    if value is None or not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _get_object(obj: Any, key: str) -> dict[str, Any] | None:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    return value if isinstance(value, dict) else None


def _nested_id(obj: Any, key: str) -> str:
    return _get_str(_get_object(obj, key), "id") or UNKNOWN


def _event_time(obj: Any, now: datetime) -> datetime:
    millis = _get_int(obj, "timestamp")
    if millis is None:
        return now
    try:
        return from_epoch_millis(millis)
    except OverflowError:
        return now


def _stringify_id(obj: Any, key: str) -> str | None:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, str)):
        return str(value)
    return None


# =============================================================================
# Entries and field changes
# =============================================================================


def get_entries(payload: Any) -> list[Any]:
    """The `entry` array of a top-level payload, or [] when absent."""
    if not isinstance(payload, dict):
        return []
    entries = payload.get("entry")
    return entries if isinstance(entries, list) else []


def classify_entry(entry: Any) -> EntryKind:
    """Field changes win over messaging when an entry carries both keys."""
    if isinstance(entry, dict):
        if "changes" in entry:
            return EntryKind.FIELD_CHANGES
        if "messaging" in entry:
            return EntryKind.MESSAGING
    return EntryKind.UNKNOWN


def iter_items(entry: dict[str, Any], key: str) -> list[Any]:
    items = entry.get(key)
    return items if isinstance(items, list) else []


def parse_field_change(change: Any) -> FieldChange:
    field = _get_str(change, "field") or UNKNOWN
    value = change.get("value") if isinstance(change, dict) else None
    if value is None:
        rendered = UNKNOWN
    elif isinstance(value, str):
        rendered = value
    else:
        rendered = json.dumps(value, ensure_ascii=False)
    return FieldChange(field=field, value=rendered)


# =============================================================================
# Messaging
# =============================================================================


def _message_variant(data: dict[str, Any]) -> MessageVariant:
    return MessageVariant(
        text=_get_str(data, "text"),
        mid=_get_str(data, "mid"),
        is_echo=data.get("is_echo") is True,
        app_id=_stringify_id(data, "app_id"),
    )


def _postback_variant(data: dict[str, Any]) -> PostbackVariant:
    return PostbackVariant(payload=_get_str(data, "payload"))


def _delivery_variant(data: dict[str, Any]) -> DeliveryVariant:
    return DeliveryVariant(watermark=_get_int64(data, "watermark"))


def _read_variant(data: dict[str, Any]) -> ReadVariant:
    return ReadVariant()


# Fixed priority order; the importer uses its own (see MIGRATION_ORDER).
LIVE_ORDER = (
    ("message", _message_variant),
    ("postback", _postback_variant),
    ("delivery", _delivery_variant),
    ("read", _read_variant),
)

MIGRATION_ORDER = (
    ("message", _message_variant),
    ("delivery", _delivery_variant),
    ("postback", _postback_variant),
)


def classify_messaging(element: Any) -> list[MessagingVariant]:
    """Every sub-object present in the element, in priority order.

    An empty list is the "unknown" case.
    """
    variants: list[MessagingVariant] = []
    for key, build in LIVE_ORDER:
        data = _get_object(element, key)
        if data is not None:
            variants.append(build(data))
    return variants


def _envelope(element: Any, now: datetime, variant: MessagingVariant) -> ParsedMessage:
    return ParsedMessage(
        sender_id=_nested_id(element, "sender"),
        recipient_id=_nested_id(element, "recipient"),
        timestamp=_event_time(element, now),
        variant=variant,
    )


def parse_messaging_event(element: Any, now: datetime) -> list[ParsedMessage]:
    """One ParsedMessage per sub-object present in a `messaging` element."""
    return [_envelope(element, now, variant) for variant in classify_messaging(element)]


def parse_migrated_payload(payload: Any, now: datetime) -> ParsedMessage | None:
    """Replay rule for archived payloads: the first of message, delivery, postback.

    Read receipts are not replayed.
    """
    for key, build in MIGRATION_ORDER:
        data = _get_object(payload, key)
        if data is not None:
            return _envelope(payload, now, build(data))
    return None
