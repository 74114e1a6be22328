from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

UTC = timezone.utc

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Fractional seconds longer than microseconds (e.g. .NET's 7 digits).
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def utc_now() -> datetime:
    """Return a tz-aware UTC timestamp."""
    return datetime.now(UTC)


def is_tz_aware(value: datetime) -> bool:
    """True if a datetime is timezone-aware (has a non-None UTC offset)."""
    return value.tzinfo is not None and value.utcoffset() is not None


def coerce_utc(value: datetime, *, assume_naive_is_utc: bool = True) -> datetime:
    """Coerce any datetime to tz-aware UTC.

    SQLite hands timestamps back naive, so readers of stored rows go through here.
    """
    if is_tz_aware(value):
        return value.astimezone(UTC)

    if not assume_naive_is_utc:
        raise ValueError("Naive datetime cannot be coerced without an explicit assumption")

    return value.replace(tzinfo=UTC)


def isoformat_z(value: datetime) -> str:
    """RFC3339-ish UTC string with a `Z` suffix."""
    dt = coerce_utc(value)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso8601(value: str) -> datetime:
    """Parse ISO8601/RFC3339 timestamps into tz-aware UTC datetimes.

    Supports `Z` suffix. Naive values are taken as UTC and sub-microsecond
    digits are dropped.
    """
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION_RE.sub(r"\1", normalized)
    dt = datetime.fromisoformat(normalized)
    return coerce_utc(dt)


def from_epoch_millis(value: int) -> datetime:
    """Convert milliseconds since the Unix epoch to a tz-aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def file_timestamp(value: datetime, *, millis: bool = True) -> str:
    """Compact sortable stamp used in file names: YYYYMMDD_HHMMSS[_fff]."""
    dt = coerce_utc(value)
    stamp = dt.strftime("%Y%m%d_%H%M%S")
    if millis:
        stamp = f"{stamp}_{dt.microsecond // 1000:03d}"
    return stamp
