"""Coercion helpers for decoded event payloads.

Decoded payloads carry 64/128-bit integers as decimal strings and 32-bit
integers as ints. These helpers turn them into the exact ints the
reconciler works with; anything that cannot be coerced is treated as
absent (None) rather than raising.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Mapping

_DIGITS = re.compile(r"^[0-9]+$")

UNKNOWN = "unknown"


def to_amount(value: Any) -> int | None:
    """Coerce a numeric-looking value to a non-negative int, or None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 0:
            return int(value)
        return None
    if isinstance(value, str):
        s = value.strip()
        if _DIGITS.match(s):
            return int(s)
    return None


def read_stream_id(payload: Mapping[str, Any]) -> str | None:
    """The stream's business key from the payload's stream_id field."""
    stream_id = to_amount(payload.get("stream_id"))
    return None if stream_id is None else str(stream_id)


def read_string_or_unknown(value: Any) -> str:
    return value if isinstance(value, str) and value else UNKNOWN


def read_duration(payload: Mapping[str, Any]) -> int:
    """Stream duration in seconds: explicit, or end_time - start_time."""
    duration = to_amount(payload.get("duration"))
    if duration is not None:
        return duration
    start = to_amount(payload.get("start_time"))
    end = to_amount(payload.get("end_time"))
    if start is not None and end is not None and end >= start:
        return end - start
    return 0


def resolve_timestamp_iso(value: Any, fallback_iso: str) -> str:
    """Convert an on-chain unix timestamp (seconds) to ISO 8601 UTC.

    Falls back to fallback_iso (normally the ledger close time) when the
    timestamp is absent, zero or outside the representable range.
    """
    seconds = to_amount(value)
    if seconds is None or seconds <= 0:
        return fallback_iso
    try:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return fallback_iso
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
