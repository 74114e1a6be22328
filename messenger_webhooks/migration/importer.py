"""
JSON Migration Importer

Replays the webhook audit log (one envelope per file) into the database.

Files are imported in file-name order, one at a time. A file is:
- skipped when it is not an envelope or its content is already stored
- failed when it cannot be read or inserted; the batch carries on
- succeeded otherwise

Running the importer twice over the same directory inserts nothing the
second time, since duplicates are detected on (payload text, event type).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles
import structlog

from messenger_webhooks.kernel.serialization import json_dumps_compact, json_loads
from messenger_webhooks.kernel.time import parse_iso8601, utc_now
from messenger_webhooks.migration.report import write_reports
from messenger_webhooks.storage.event_store import EventStore
from messenger_webhooks.webhooks.parser import parse_migrated_payload

logger = structlog.get_logger()

MESSAGING_EVENT_TYPE = "messaging"
UNKNOWN_EVENT_TYPE = "unknown"


@dataclass
class MigrationResult:
    """File paths per outcome, in processing order."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.skipped)


class _Skip(Exception):
    """File is not importable; recorded as skipped, not failed."""


class MigrationImporter:
    """Imports `*.json` envelopes from a directory through the EventStore."""

    def __init__(
        self,
        source_dir: str | Path,
        reports_dir: str | Path,
        store: EventStore,
    ):
        self.source_dir = Path(source_dir)
        self.reports_dir = Path(reports_dir)
        self.store = store

    async def import_all(self) -> MigrationResult:
        """
        Import every JSON file in the source directory and write reports.

        Returns:
            MigrationResult with succeeded / failed / skipped file paths
        """
        started_at = utc_now()
        result = MigrationResult()

        if not self.source_dir.is_dir():
            logger.warning("Migration source directory not found", source_dir=str(self.source_dir))
            await write_reports(result, self.reports_dir, started_at)
            return result

        files = sorted(self.source_dir.glob("*.json"), key=lambda p: p.name)
        logger.info("Starting JSON migration", source_dir=str(self.source_dir), files=len(files))

        for path in files:
            try:
                await self._import_file(path)
            except _Skip as e:
                logger.info("Skipping file", file=path.name, reason=str(e))
                result.skipped.append(str(path))
            except Exception as e:
                logger.error("Failed to migrate file", file=path.name, error=str(e))
                result.failed.append(str(path))
            else:
                result.succeeded.append(str(path))

        logger.info(
            "JSON migration completed",
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            skipped=len(result.skipped),
        )

        await write_reports(result, self.reports_dir, started_at)
        return result

    async def _import_file(self, path: Path) -> None:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()

        envelope = json_loads(content)
        if not isinstance(envelope, dict) or "EventType" not in envelope:
            raise _Skip("unknown format")
        if "Payload" not in envelope:
            raise _Skip("no payload")

        event_type = _event_type(envelope["EventType"])
        received_at_raw = envelope.get("ReceivedAt")
        received_at = parse_iso8601(received_at_raw) if received_at_raw is not None else utc_now()

        payload = envelope["Payload"]
        raw_payload = json_dumps_compact(payload)

        if await self.store.event_exists(raw_payload, event_type):
            raise _Skip("duplicate")

        object_type = payload.get("object") if isinstance(payload, dict) else None
        if not isinstance(object_type, str):
            object_type = None

        raw_event_id = await self.store.save_migrated_event(
            event_type,
            raw_payload,
            received_at,
            object_type,
        )

        if event_type == MESSAGING_EVENT_TYPE or isinstance(payload, dict):
            await self._import_message(path, raw_event_id, payload)

        logger.debug("Migrated file", file=path.name, raw_event_id=raw_event_id)

    async def _import_message(self, path: Path, raw_event_id: int, payload: Any) -> None:
        # The event row is already in; a bad message does not fail the file.
        try:
            parsed = parse_migrated_payload(payload, utc_now())
            if parsed is not None:
                await self.store.save_message(raw_event_id, parsed.to_model())
        except Exception as e:
            logger.error(
                "Error extracting message from migrated event",
                file=path.name,
                raw_event_id=raw_event_id,
                error=str(e),
            )


def _event_type(value: Any) -> str:
    if value is None:
        return UNKNOWN_EVENT_TYPE
    return value if isinstance(value, str) else str(value)
