"""
Webhook file log.

Append-only audit trail: every webhook body and every sub-event is written
to its own pretty-printed JSON file. The JSON importer replays these files
into the database, so the envelope keys (EventType / ReceivedAt / Payload)
are part of the on-disk contract.
"""

from __future__ import annotations

import re
from pathlib import Path

import aiofiles
import structlog

from messenger_webhooks.kernel.serialization import json_dumps_pretty, json_loads
from messenger_webhooks.kernel.time import file_timestamp, isoformat_z, utc_now

logger = structlog.get_logger()

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")

# Suffixes tried when several files land in the same millisecond
_MAX_NAME_ATTEMPTS = 1000


def safe_file_stem(event_type: str) -> str:
    """Event types come from the payload (field_<name>); keep them path-safe."""
    return _UNSAFE_NAME_CHARS.sub("_", event_type) or "event"


class WebhookFileLog:
    """Writes webhook envelopes under a single directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    async def append(self, event_type: str, json_payload: str) -> Path | None:
        """
        Save one event envelope to a new file.

        Failures are logged and swallowed: a backup write must never fail the
        request that triggered it.

        Args:
            event_type: Envelope type, e.g. "webhook", "messaging", "field_about"
            json_payload: JSON text; stored parsed, not as an escaped string

        Returns:
            Path of the written file, or None if the write failed
        """
        try:
            received_at = utc_now()
            envelope = {
                "EventType": event_type,
                "ReceivedAt": isoformat_z(received_at),
                "Payload": json_loads(json_payload),
            }
            content = json_dumps_pretty(envelope)

            self.directory.mkdir(parents=True, exist_ok=True)
            stem = f"{safe_file_stem(event_type)}_{file_timestamp(received_at)}"
            path = await self._write_new(stem, content)

            logger.info("Webhook event saved to file", path=str(path), event_type=event_type)
            return path
        except Exception as e:
            logger.error(
                "Error saving webhook event to file",
                event_type=event_type,
                error=str(e),
            )
            return None

    async def _write_new(self, stem: str, content: str) -> Path:
        for attempt in range(_MAX_NAME_ATTEMPTS):
            name = f"{stem}.json" if attempt == 0 else f"{stem}_{attempt}.json"
            path = self.directory / name
            try:
                async with aiofiles.open(path, "x", encoding="utf-8") as f:
                    await f.write(content)
                return path
            except FileExistsError:
                continue
        raise FileExistsError(f"No free file name for {stem}")
