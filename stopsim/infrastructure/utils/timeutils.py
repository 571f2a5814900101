"""Clock and epoch-millisecond helpers (all UTC)."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

from stopsim.models.errors import InvalidEntryDate

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Epoch-ms range a datetime can hold (0001-01-01 .. 9999-12-31T23:59:59.999).
MIN_EPOCH_MS = -62_135_596_800_000
MAX_EPOCH_MS = 253_402_300_799_999


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


def ms_to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def ms_to_iso(ms: int) -> str:
    """Epoch ms -> ``2024-01-01T00:00:00.000Z`` (millisecond precision, Z suffix)."""
    return ms_to_datetime(ms).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // timedelta(milliseconds=1)


def parse_entry_date(value: str) -> int:
    """Parse an entry date into epoch ms.

    Accepts:
    - ISO-8601 (``2024-05-01``, ``2024-05-01T12:30:00Z``, ``...+02:00``). Naive values are UTC.
    - An all-digit string, taken as epoch milliseconds.
    """
    text = str(value or "").strip()
    if not text:
        raise InvalidEntryDate(value)

    if text.isdigit():
        return int(text)

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError as e:
        raise InvalidEntryDate(value) from e
    return datetime_to_ms(dt)
