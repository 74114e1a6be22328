from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

from messenger_webhooks.kernel.time import isoformat_z


def to_jsonable(value: Any) -> Any:
    """Coerce common Python types into JSON-compatible primitives.

    This is intentionally explicit (and limited). If you need to serialize
    a new type, add a branch and tests.
    """
    if value is None:
        return None

    if isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, datetime):
        return isoformat_z(value)

    if isinstance(value, date):
        return value.isoformat()

    if isinstance(value, Path):
        return str(value)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {str(k): to_jsonable(v) for (k, v) in dataclasses.asdict(value).items()}

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for (k, v) in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]

    raise TypeError(f"Unsupported type for JSON serialization: {type(value)!r}")


def json_dumps_compact(value: Any) -> str:
    """Deterministic compact encoding; key order is preserved, not sorted."""
    return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


def json_dumps_pretty(value: Any) -> str:
    """Indented encoding for files humans read (audit log, reports)."""
    return json.dumps(to_jsonable(value), ensure_ascii=False, indent=2)


def json_loads(value: str | bytes) -> Any:
    return json.loads(value)
