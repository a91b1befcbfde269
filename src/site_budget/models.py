"""Domain models for tracked sites, attention and usage metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .timeutils import MINUTES_PER_DAY


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"

    @classmethod
    def parse(cls, value: object) -> "Period":
        if isinstance(value, Period):
            return value
        return cls.WEEKLY if str(value).strip().lower() == "weekly" else cls.DAILY


@dataclass(frozen=True, slots=True)
class Budget:
    """Time allowance per period. ``seconds`` of ``None`` means unlimited."""

    seconds: Optional[int] = None

    @classmethod
    def unlimited(cls) -> "Budget":
        return cls(None)

    @classmethod
    def from_minutes(cls, minutes: float) -> "Budget":
        if minutes == 0:
            return cls.unlimited()
        minutes = max(1.0, minutes)
        return cls(max(60, int(round(minutes * 60))))

    @property
    def is_unlimited(self) -> bool:
        return self.seconds is None

    @property
    def minutes(self) -> float:
        if self.seconds is None:
            return 0
        whole, rest = divmod(self.seconds, 60)
        return whole if rest == 0 else self.seconds / 60

    def is_exhausted(self, usage_seconds: int) -> bool:
        return self.seconds is not None and usage_seconds >= self.seconds

    def remaining(self, usage_seconds: int) -> Optional[int]:
        if self.seconds is None:
            return None
        return max(0, self.seconds - usage_seconds)


@dataclass(slots=True)
class Site:
    """A tracked domain together with its budget and current period usage."""

    id: str
    domain: str
    period: Period = Period.DAILY
    budget: Budget = field(default_factory=Budget.unlimited)
    enabled: bool = True
    window_start_minutes: int = 0
    window_end_minutes: int = MINUTES_PER_DAY
    invert_window: bool = False
    usage_seconds: int = 0
    period_start: Optional[int] = None
    created_at: int = 0
    last_updated: Optional[int] = None
    last_blocked_at: Optional[int] = None


@dataclass(slots=True)
class FocusContext:
    """The attended tab, whether or not it belongs to a tracked site."""

    tab_id: int
    window_id: Optional[int]
    url: str
    host: str
    started_at: int
    last_tick: int
    accumulated_seconds: int = 0


@dataclass(slots=True)
class Session:
    """Live accounting run against one enabled, in-window site."""

    site_id: str
    tab_id: Optional[int]
    window_id: Optional[int]
    host: str
    started_at: int
    last_tick: int
    accumulated_seconds: int = 0


@dataclass(slots=True)
class SiteTotal:
    site_id: str
    domain: str
    seconds: int = 0
    session_count: int = 0
    total_session_seconds: int = 0


@dataclass(slots=True)
class DaySummary:
    day_key: str
    total_seconds: int = 0


@dataclass(slots=True)
class Metrics:
    """Usage totals for a single local day plus a short archive of past days."""

    day_key: str
    total_seconds: int = 0
    tracked_seconds: int = 0
    session_count: int = 0
    total_session_seconds: int = 0
    site_totals: dict[str, SiteTotal] = field(default_factory=dict)
    history: list[DaySummary] = field(default_factory=list)


@dataclass(slots=True)
class State:
    sites: dict[str, Site]
    metrics: Metrics
    session: Optional[Session] = None
    focus: Optional[FocusContext] = None
