"""
Migration reports.

Each import batch leaves two files behind, both named after the batch start:
- migration_report_<YYYYMMDD_HHMMSS>.json: machine-readable counts and file lists
- migration_summary_<YYYYMMDD_HHMMSS>.txt: the same, for people
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import structlog

from messenger_webhooks.kernel.serialization import json_dumps_pretty
from messenger_webhooks.kernel.time import file_timestamp, isoformat_z

if TYPE_CHECKING:
    from messenger_webhooks.migration.importer import MigrationResult

logger = structlog.get_logger()

RULE_WIDTH = 80
HEAVY_RULE = "=" * RULE_WIDTH
LIGHT_RULE = "-" * RULE_WIDTH

SUCCESS_MARK = "✓"
FAILED_MARK = "✗"
SKIPPED_MARK = "⊘"

# Suffixes tried when several batches start in the same second
_MAX_NAME_ATTEMPTS = 1000


def _file_entries(paths: list[str]) -> list[dict[str, str]]:
    return [{"file_name": Path(p).name, "full_path": p} for p in paths]


def build_json_report(result: MigrationResult, migration_date: datetime) -> dict[str, Any]:
    return {
        "migration_date": isoformat_z(migration_date),
        "summary": {
            "total_files": result.total,
            "successful": len(result.succeeded),
            "failed": len(result.failed),
            "skipped": len(result.skipped),
        },
        "successful_files": _file_entries(result.succeeded),
        "failed_files": _file_entries(result.failed),
        "skipped_files": _file_entries(result.skipped),
    }


def _section(lines: list[str], title: str, mark: str, paths: list[str]) -> None:
    if not paths:
        return
    lines.extend([LIGHT_RULE, title, LIGHT_RULE])
    lines.extend(f"  {mark} {Path(p).name}" for p in paths)
    lines.append("")


def build_text_summary(result: MigrationResult, migration_date: datetime) -> str:
    lines = [
        HEAVY_RULE,
        "WEBHOOK MIGRATION REPORT",
        HEAVY_RULE,
        "",
        f"Migration Date: {migration_date:%Y-%m-%d %H:%M:%S} UTC",
        "",
        LIGHT_RULE,
        "SUMMARY",
        LIGHT_RULE,
        f"Total Files Processed: {result.total}",
        f"{SUCCESS_MARK} Successfully Migrated: {len(result.succeeded)}",
        f"{FAILED_MARK} Failed: {len(result.failed)}",
        f"{SKIPPED_MARK} Skipped (duplicates): {len(result.skipped)}",
        "",
    ]
    _section(lines, "SUCCESSFULLY MIGRATED FILES", SUCCESS_MARK, result.succeeded)
    _section(lines, "SKIPPED FILES (Already in Database)", SKIPPED_MARK, result.skipped)
    _section(lines, "FAILED FILES", FAILED_MARK, result.failed)
    lines.append(HEAVY_RULE)
    return "\n".join(lines) + "\n"


async def write_reports(
    result: MigrationResult,
    reports_dir: str | Path,
    migration_date: datetime,
) -> list[Path]:
    """
    Write the JSON report and the text summary.

    Batches started in the same second get a `_1`, `_2`... suffix so earlier
    reports are never overwritten. Failures are logged; the import result
    stands either way.

    Returns:
        Paths that were written
    """
    reports_dir = Path(reports_dir)
    stamp = file_timestamp(migration_date, millis=False)
    contents = [
        ("migration_report", ".json", json_dumps_pretty(build_json_report(result, migration_date))),
        ("migration_summary", ".txt", build_text_summary(result, migration_date)),
    ]

    written: list[Path] = []
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
        suffix = _free_suffix(reports_dir, stamp, [(prefix, ext) for prefix, ext, _ in contents])
        for prefix, ext, content in contents:
            path = reports_dir / f"{prefix}_{stamp}{suffix}{ext}"
            async with aiofiles.open(path, "x", encoding="utf-8") as f:
                await f.write(content)
            written.append(path)
    except Exception as e:
        logger.error("Error writing migration report", reports_dir=str(reports_dir), error=str(e))
        return written

    logger.info("Migration report written", paths=[str(p) for p in written])
    return written


def _free_suffix(reports_dir: Path, stamp: str, names: list[tuple[str, str]]) -> str:
    """First suffix for which none of the report files exist yet."""
    for attempt in range(_MAX_NAME_ATTEMPTS):
        suffix = "" if attempt == 0 else f"_{attempt}"
        if not any((reports_dir / f"{prefix}_{stamp}{suffix}{ext}").exists() for prefix, ext in names):
            return suffix
    raise FileExistsError(f"No free report name for {stamp}")
