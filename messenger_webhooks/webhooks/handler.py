"""
Messenger Webhook Handler

Ingestion pipeline for an already-authenticated webhook body:
archive it, record it, then walk its entries.
- Field changes (about, name, picture, ...) are archived and logged only
- Messaging elements are archived and every sub-event becomes a Message row
- Anything else is logged and skipped
"""

from __future__ import annotations

from typing import Any

import structlog

from messenger_webhooks.kernel.serialization import json_dumps_compact
from messenger_webhooks.kernel.time import utc_now
from messenger_webhooks.storage.event_store import EventStore
from messenger_webhooks.storage.file_log import WebhookFileLog
from messenger_webhooks.webhooks.parser import (
    EntryKind,
    FieldChange,
    classify_entry,
    get_entries,
    iter_items,
    parse_field_change,
    parse_messaging_event,
)

logger = structlog.get_logger()

WEBHOOK_EVENT_TYPE = "webhook"
MESSAGING_EVENT_TYPE = "messaging"


class MessengerWebhookHandler:
    """
    Handler for Meta Messenger page webhooks.

    The file log is best-effort; database errors propagate so the HTTP
    layer can answer 500.
    """

    def __init__(self, file_log: WebhookFileLog, store: EventStore):
        self.file_log = file_log
        self.store = store

    async def handle_webhook(self, payload: dict[str, Any], raw_body: str) -> dict[str, Any]:
        """
        Process one webhook delivery.

        Args:
            payload: Decoded webhook body
            raw_body: Body text exactly as received

        Returns:
            Summary of what was recorded
        """
        object_type = payload.get("object")
        if not isinstance(object_type, str):
            object_type = None

        await self.file_log.append(WEBHOOK_EVENT_TYPE, raw_body)
        raw_event_id = await self.store.save_event(WEBHOOK_EVENT_TYPE, raw_body, object_type)

        summary = {
            "raw_event_id": raw_event_id,
            "entries": 0,
            "messages_saved": 0,
            "field_changes": 0,
            "unrecognized": 0,
        }

        entries = get_entries(payload)
        if not entries:
            logger.warning("Webhook has no entries", raw_event_id=raw_event_id)
            return summary

        for entry in entries:
            summary["entries"] += 1
            kind = classify_entry(entry)

            if kind is EntryKind.FIELD_CHANGES:
                summary["field_changes"] += await self._handle_field_changes(entry)
            elif kind is EntryKind.MESSAGING:
                summary["messages_saved"] += await self._handle_messaging(entry, raw_event_id)
            else:
                logger.info("Unrecognized webhook entry", raw_event_id=raw_event_id)
                summary["unrecognized"] += 1

        logger.info("Webhook processed", **summary)
        return summary

    async def _handle_field_changes(self, entry: dict[str, Any]) -> int:
        count = 0
        for raw_change in iter_items(entry, "changes"):
            change = parse_field_change(raw_change)
            await self.file_log.append(f"field_{change.field}", json_dumps_compact(raw_change))
            self._log_field_change(change)
            count += 1
        return count

    @staticmethod
    def _log_field_change(change: FieldChange) -> None:
        if change.field == "about":
            logger.info("Page about updated", value=change.value)
        elif change.field == "name":
            logger.info("Page name updated", value=change.value)
        elif change.field == "picture":
            logger.info("Page picture updated")
        else:
            logger.info("Page field changed", field=change.field, value=change.value)

    async def _handle_messaging(self, entry: dict[str, Any], raw_event_id: int) -> int:
        saved = 0
        for element in iter_items(entry, "messaging"):
            await self.file_log.append(MESSAGING_EVENT_TYPE, json_dumps_compact(element))

            parsed = parse_messaging_event(element, utc_now())
            if not parsed:
                logger.info("Unknown messaging event type", raw_event_id=raw_event_id)
                continue

            for message in parsed:
                await self.store.save_message(raw_event_id, message.to_model())
                saved += 1
        return saved
