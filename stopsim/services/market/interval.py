"""Bybit kline interval codes."""

from __future__ import annotations

from typing import Any, Dict

from stopsim.models.errors import InvalidInterval

# Bybit v5 kline intervals -> bar width in minutes ("M" approximated as 30 days).
INTERVAL_MINUTES: Dict[str, int] = {
    "1": 1,
    "3": 3,
    "5": 5,
    "15": 15,
    "30": 30,
    "60": 60,
    "120": 120,
    "240": 240,
    "360": 360,
    "720": 720,
    "D": 1440,
    "W": 10080,
    "M": 43200,
}


def normalize_interval(interval: Any) -> str:
    code = str(interval).strip().upper() if interval is not None else ""
    if code not in INTERVAL_MINUTES:
        raise InvalidInterval(interval)
    return code


def interval_to_minutes(interval: Any) -> int:
    return INTERVAL_MINUTES[normalize_interval(interval)]
