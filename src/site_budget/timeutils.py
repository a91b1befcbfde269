"""Calendar helpers: day keys, period boundaries and time-of-day windows."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Any, Protocol

MINUTES_PER_DAY = 24 * 60

_PERIOD_DAYS = {"daily": 1, "weekly": 7}


class WindowedSite(Protocol):
    window_start_minutes: int
    window_end_minutes: int
    invert_window: bool


def now_ms() -> int:
    return int(time.time() * 1000)


def to_local(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000)


def from_local(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def day_key(now: int) -> str:
    """Local calendar date of ``now`` as ``YYYY-MM-DD``."""
    return to_local(now).strftime("%Y-%m-%d")


def period_start(period: str, now: int) -> int:
    """Start of the accounting period containing ``now``.

    Daily periods start at local midnight; weekly periods start at midnight
    of the most recent Monday.
    """
    midnight = to_local(now).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        midnight -= timedelta(days=midnight.weekday())
    return from_local(midnight)


def next_period_start(period: str, start: int) -> int:
    days = _PERIOD_DAYS.get(period, 1)
    return from_local(to_local(start) + timedelta(days=days))


def minutes_since_midnight(now: int) -> int:
    local = to_local(now)
    return local.hour * 60 + local.minute


def clamp_window_value(value: Any) -> int:
    try:
        numeric = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        numeric = 0
    return min(MINUTES_PER_DAY, max(0, numeric))


def normalize_window_bounds(start: Any, end: Any) -> tuple[int, int]:
    """Clamp window bounds to a day, collapsing empty windows to all day.

    A start later than the end describes a window that crosses midnight and
    is kept as is.
    """
    normalized_start = clamp_window_value(start)
    normalized_end = clamp_window_value(end)
    if normalized_start == MINUTES_PER_DAY:
        normalized_start = 0
    if normalized_end == 0:
        normalized_end = MINUTES_PER_DAY
    if normalized_start == normalized_end:
        return 0, MINUTES_PER_DAY
    return normalized_start, normalized_end


def is_within_active_window(site: WindowedSite, now: int) -> bool:
    start, end = normalize_window_bounds(
        site.window_start_minutes, site.window_end_minutes
    )
    minutes = minutes_since_midnight(now)

    if start == 0 and end == MINUTES_PER_DAY:
        active = True
    elif start < end:
        active = start <= minutes < end
    else:
        active = minutes >= start or minutes < end

    return not active if site.invert_window else active
