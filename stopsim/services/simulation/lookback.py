"""How many bars are needed to cover entry -> now, capped to one provider page."""

from __future__ import annotations

from stopsim.models.errors import FutureEntryDate
from stopsim.models.simulation_models import LookbackWindow

MAX_PAGE_SIZE = 200  # Bybit /v5/market/kline page cap used by this service

MS_PER_MINUTE = 60_000


def compute_lookback(
    entry_timestamp: int,
    interval_minutes: int,
    now: int,
    max_page_size: int = MAX_PAGE_SIZE,
) -> LookbackWindow:
    """Bars from entry to now, rounded up.

    The provider query starts at ``entry_timestamp``, so the cap drops the most
    recent bars when the window is longer than one page.
    """
    entry_timestamp = int(entry_timestamp)
    now = int(now)
    if entry_timestamp >= now:
        raise FutureEntryDate(entry_timestamp, now)
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be > 0")
    if max_page_size <= 0:
        raise ValueError("max_page_size must be > 0")

    elapsed = now - entry_timestamp
    bar_ms = interval_minutes * MS_PER_MINUTE
    bars_needed = -(-elapsed // bar_ms)

    return LookbackWindow(
        entry_timestamp=entry_timestamp,
        now=now,
        interval_minutes=interval_minutes,
        elapsed_ms=elapsed,
        bars_needed=bars_needed,
        bars_capped=min(bars_needed, max_page_size),
        max_page_size=max_page_size,
    )
