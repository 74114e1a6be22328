"""
Migration API Routes

Replays the JSON audit log into the database and reports table statistics.
"""

from datetime import datetime
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from messenger_webhooks.config import get_settings
from messenger_webhooks.migration import MigrationImporter
from messenger_webhooks.storage import EventStore

logger = structlog.get_logger()

router = APIRouter(prefix="/migration", tags=["Migration"])


def get_event_store() -> EventStore:
    return EventStore()


def get_migration_importer(store: EventStore = Depends(get_event_store)) -> MigrationImporter:
    settings = get_settings()
    return MigrationImporter(
        source_dir=settings.webhook_storage_dir,
        reports_dir=settings.migration_reports_dir,
        store=store,
    )


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class MigrationStatistics(BaseModel):
    successful: int
    failed: int
    skipped: int
    total: int


class MigrationDetails(BaseModel):
    successful_files: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    skipped_files: list[str] = Field(default_factory=list)


class MigrationResponse(BaseModel):
    """Outcome of one import batch; file lists hold bare file names."""

    success: bool = True
    message: str = "Migration completed"
    statistics: MigrationStatistics
    details: MigrationDetails


class MessageKindCount(BaseModel):
    kind: str
    count: int


class RecentEvent(BaseModel):
    id: int
    event_type: str
    received_at: datetime
    object_type: str | None = None
    message_count: int


class DatabaseStatsResponse(BaseModel):
    total_webhook_events: int
    total_messages: int
    unresponded_messages: int
    message_kinds: list[MessageKindCount]
    recent_events: list[RecentEvent]


# =============================================================================
# ENDPOINTS
# =============================================================================


def _names(paths: list[str]) -> list[str]:
    return [Path(p).name for p in paths]


@router.post("/migrate-json-files", response_model=MigrationResponse)
async def migrate_json_files(
    importer: MigrationImporter = Depends(get_migration_importer),
) -> MigrationResponse:
    """
    Import every JSON file from the webhook storage directory.

    Already-imported files are skipped, so the endpoint is safe to call again.
    """
    logger.info("Starting JSON file migration", source_dir=str(importer.source_dir))
    result = await importer.import_all()

    return MigrationResponse(
        statistics=MigrationStatistics(
            successful=len(result.succeeded),
            failed=len(result.failed),
            skipped=len(result.skipped),
            total=result.total,
        ),
        details=MigrationDetails(
            successful_files=_names(result.succeeded),
            failed_files=_names(result.failed),
            skipped_files=_names(result.skipped),
        ),
    )


@router.get("/database-stats", response_model=DatabaseStatsResponse)
async def get_database_stats(store: EventStore = Depends(get_event_store)):
    """Event and message counts, plus the five most recent events."""
    return await store.get_stats()
