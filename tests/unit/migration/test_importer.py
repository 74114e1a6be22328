"""
Unit tests for the JSON migration importer.

Each test writes envelope files into a temporary directory and imports
them into a fresh SQLite database.
"""

import json
from datetime import datetime

import pytest

from messenger_webhooks.db.models import MessageKind
from messenger_webhooks.kernel.time import UTC, coerce_utc
from messenger_webhooks.migration import MigrationImporter, MigrationResult
from messenger_webhooks.migration.report import write_reports

pytestmark = pytest.mark.unit

MESSAGING_PAYLOAD = {
    "sender": {"id": "U1"},
    "recipient": {"id": "P1"},
    "timestamp": 1700000000000,
    "message": {"mid": "m1", "text": "hello"},
}


def _write(directory, name, content):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    text = content if isinstance(content, str) else json.dumps(content, indent=2)
    path.write_text(text, encoding="utf-8")
    return path


def _envelope(event_type="messaging", payload=None, received_at="2024-01-15T10:30:45.123Z"):
    envelope = {"EventType": event_type, "ReceivedAt": received_at}
    envelope["Payload"] = MESSAGING_PAYLOAD if payload is None else payload
    return envelope


@pytest.fixture
def importer(store, storage_dir, reports_dir):
    return MigrationImporter(source_dir=storage_dir, reports_dir=reports_dir, store=store)


class TestImportAll:
    @pytest.mark.asyncio
    async def test_imports_event_and_message(self, importer, store, storage_dir):
        path = _write(storage_dir, "messaging_20240115_103045_123.json", _envelope())

        result = await importer.import_all()

        assert result.succeeded == [str(path)]
        (event,) = await store.list_events()
        assert event.event_type == "messaging"
        assert event.processed is True
        assert coerce_utc(event.received_at) == datetime(2024, 1, 15, 10, 30, 45, 123000, tzinfo=UTC)
        assert json.loads(event.raw_payload) == MESSAGING_PAYLOAD

        (message,) = await store.list_messages()
        assert message.raw_event_id == event.id
        assert message.text == "hello"

    @pytest.mark.asyncio
    async def test_second_run_skips_everything(self, importer, store, storage_dir):
        _write(storage_dir, "a.json", _envelope())
        _write(storage_dir, "b.json", _envelope(payload={**MESSAGING_PAYLOAD, "message": {"text": "again"}}))

        first = await importer.import_all()
        second = await importer.import_all()

        assert len(first.succeeded) == 2
        assert second.succeeded == []
        assert len(second.skipped) == 2
        assert len(await store.list_events()) == 2
        assert len(await store.list_messages()) == 2

    @pytest.mark.asyncio
    async def test_same_content_in_two_files_is_imported_once(self, importer, storage_dir):
        _write(storage_dir, "a.json", _envelope())
        # Different formatting, same content
        _write(storage_dir, "b.json", json.dumps(_envelope()))

        result = await importer.import_all()

        assert len(result.succeeded) == 1
        assert [p.endswith("b.json") for p in result.skipped] == [True]

    @pytest.mark.asyncio
    async def test_malformed_file_fails_without_stopping_the_batch(self, importer, store, storage_dir):
        _write(storage_dir, "a.json", _envelope())
        bad = _write(storage_dir, "b.json", "{ this is not json")
        _write(storage_dir, "c.json", _envelope(event_type="webhook", payload={"object": "page", "entry": []}))

        result = await importer.import_all()

        assert result.failed == [str(bad)]
        assert len(result.succeeded) == 2
        assert len(await store.list_events()) == 2

    @pytest.mark.asyncio
    async def test_files_are_processed_in_name_order(self, importer, storage_dir):
        for name in ["c.json", "a.json", "b.json"]:
            _write(storage_dir, name, _envelope(payload={"name": name}))

        result = await importer.import_all()

        assert [p.rsplit("/", 1)[-1] for p in result.succeeded] == ["a.json", "b.json", "c.json"]

    @pytest.mark.asyncio
    async def test_unknown_format_and_missing_payload_are_skipped(self, importer, store, storage_dir):
        _write(storage_dir, "a.json", {"foo": "bar"})
        _write(storage_dir, "b.json", {"EventType": "messaging", "ReceivedAt": "2024-01-15T10:30:45Z"})
        _write(storage_dir, "c.json", [1, 2, 3])

        result = await importer.import_all()

        assert len(result.skipped) == 3
        assert await store.list_events() == []

    @pytest.mark.asyncio
    async def test_null_event_type_and_missing_received_at(self, importer, store, storage_dir):
        _write(storage_dir, "a.json", {"EventType": None, "Payload": {"object": "page"}})

        result = await importer.import_all()

        assert len(result.succeeded) == 1
        (event,) = await store.list_events()
        assert event.event_type == "unknown"
        assert event.object_type == "page"
        assert event.received_at is not None

    @pytest.mark.asyncio
    async def test_only_one_message_per_file_with_replay_priority(self, importer, store, storage_dir):
        payload = {**MESSAGING_PAYLOAD, "delivery": {"watermark": 5}, "read": {"watermark": 5}}
        del payload["message"]
        _write(storage_dir, "a.json", _envelope(payload=payload))
        _write(storage_dir, "b.json", _envelope(payload={**MESSAGING_PAYLOAD, "read": {"watermark": 1}, "message": None}))

        result = await importer.import_all()

        assert len(result.succeeded) == 2
        (message,) = await store.list_messages()
        assert message.kind == MessageKind.DELIVERY
        assert message.delivery_watermark == 5

    @pytest.mark.asyncio
    async def test_non_json_files_are_ignored(self, importer, storage_dir):
        _write(storage_dir, "notes.txt", "hello")

        result = await importer.import_all()

        assert result.total == 0

    @pytest.mark.asyncio
    async def test_missing_source_directory(self, importer, reports_dir):
        result = await importer.import_all()

        assert result == MigrationResult()
        assert len(list(reports_dir.glob("migration_report_*.json"))) == 1


class TestReports:
    @pytest.mark.asyncio
    async def test_json_report(self, importer, storage_dir, reports_dir):
        ok = _write(storage_dir, "a.json", _envelope())
        bad = _write(storage_dir, "b.json", "not json")
        skipped = _write(storage_dir, "c.json", {"foo": "bar"})

        await importer.import_all()

        (report_path,) = reports_dir.glob("migration_report_*.json")
        report = json.loads(report_path.read_text(encoding="utf-8"))
        assert report["summary"] == {"total_files": 3, "successful": 1, "failed": 1, "skipped": 1}
        assert report["successful_files"] == [{"file_name": "a.json", "full_path": str(ok)}]
        assert report["failed_files"] == [{"file_name": "b.json", "full_path": str(bad)}]
        assert report["skipped_files"] == [{"file_name": "c.json", "full_path": str(skipped)}]
        assert report["migration_date"].endswith("Z")

    @pytest.mark.asyncio
    async def test_text_summary(self, importer, storage_dir, reports_dir):
        _write(storage_dir, "a.json", _envelope())
        _write(storage_dir, "b.json", "not json")

        await importer.import_all()

        (summary_path,) = reports_dir.glob("migration_summary_*.txt")
        text = summary_path.read_text(encoding="utf-8")
        assert text.splitlines()[0] == "=" * 80
        assert "WEBHOOK MIGRATION REPORT" in text
        assert "Total Files Processed: 2" in text
        assert "✓ Successfully Migrated: 1" in text
        assert "✗ Failed: 1" in text
        assert "⊘ Skipped (duplicates): 0" in text
        assert "  ✓ a.json" in text
        assert "  ✗ b.json" in text
        assert "SKIPPED FILES" not in text

    @pytest.mark.asyncio
    async def test_report_names_share_the_batch_stamp(self, importer, storage_dir, reports_dir):
        _write(storage_dir, "a.json", _envelope())

        await importer.import_all()

        (json_report,) = reports_dir.glob("migration_report_*.json")
        (text_report,) = reports_dir.glob("migration_summary_*.txt")
        assert json_report.stem.removeprefix("migration_report_") == text_report.stem.removeprefix("migration_summary_")

    @pytest.mark.asyncio
    async def test_batches_in_the_same_second_keep_separate_reports(self, reports_dir):
        started = datetime(2024, 1, 15, 10, 30, 45, 100000, tzinfo=UTC)
        later_same_second = datetime(2024, 1, 15, 10, 30, 45, 900000, tzinfo=UTC)

        first = await write_reports(MigrationResult(succeeded=["/data/a.json"]), reports_dir, started)
        original = first[0].read_text(encoding="utf-8")
        second = await write_reports(MigrationResult(failed=["/data/b.json"]), reports_dir, later_same_second)

        assert [p.name for p in first] == [
            "migration_report_20240115_103045.json",
            "migration_summary_20240115_103045.txt",
        ]
        assert [p.name for p in second] == [
            "migration_report_20240115_103045_1.json",
            "migration_summary_20240115_103045_1.txt",
        ]
        assert first[0].read_text(encoding="utf-8") == original
        assert json.loads(second[0].read_text(encoding="utf-8"))["summary"]["failed"] == 1
        assert len(list(reports_dir.glob("migration_*"))) == 4
