"""Configuration models and helpers for the budget tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for usage accrual and enforcement."""

    tick_interval: timedelta = timedelta(seconds=15)
    block_page_url: str = "blocked.html?siteId={site_id}"
    state_key: str = "state"

    @classmethod
    def from_intervals(
        cls,
        tick_seconds: float,
        block_page_url: str | None = None,
    ) -> "TrackerSettings":
        settings = cls(tick_interval=timedelta(seconds=tick_seconds))
        if block_page_url:
            settings.block_page_url = block_page_url
        return settings
