"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from .timeutils import to_local


class SummaryPrinter:
    """Render human-readable site lists and statistics in the console."""

    def print_sites(self, sites: Iterable[Mapping[str, Any]]) -> None:
        sites = list(sites)
        if not sites:
            print("No sites configured.")
            return

        print(f"{'Domain':<30} {'Used':>9} {'Limit':>9} {'Period':<7} Status")
        print("-" * 72)
        for site in sites:
            limit = (
                "unlimited"
                if site["limit_seconds"] is None
                else format_duration(site["limit_seconds"])
            )
            status = "enabled" if site["enabled"] else "disabled"
            if site["remaining_seconds"] == 0:
                status = "blocked"
            print(
                f"{site['domain'][:30]:<30} {format_duration(site['usage_seconds']):>9} "
                f"{limit:>9} {site['period']:<7} {status}"
            )
            print(
                f"  id={site['id']} window={format_window(site)} "
                f"resets {format_timestamp(site['next_reset'])}"
            )

    def print_stats(self, stats: Mapping[str, Any]) -> None:
        print("Today")
        print("-" * 40)
        print(f"Attended time: {format_duration(stats['today_seconds'])}")
        print(f"Tracked time:  {format_duration(stats['tracked_seconds'])}")
        print(f"Sessions:      {stats['session_count']}")
        print(f"Avg session:   {format_duration(stats['avg_session_seconds'])}")

        top_sites = stats["top_sites"]
        if top_sites:
            print()
            print("Top sites:")
            for entry in top_sites[:5]:
                print(
                    f"  {entry['rank']:>2}. {entry['domain'][:28]:<28} "
                    f"{format_duration(entry['seconds'])} {entry['share']:>6.1%}"
                )

        trend = stats["trend"]
        if trend:
            print()
            print("Last days:")
            for entry in trend:
                print(f"  {entry['day_key']}  {format_duration(entry['total_seconds'])}")


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_minutes_of_day(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def format_window(site: Mapping[str, Any]) -> str:
    start = site["window_start_minutes"]
    end = site["window_end_minutes"]
    label = f"{format_minutes_of_day(start)}-{format_minutes_of_day(end)}"
    return f"outside {label}" if site["invert_window"] else label


def format_timestamp(timestamp_ms: Optional[int]) -> str:
    if timestamp_ms is None:
        return "-"
    return to_local(timestamp_ms).strftime("%Y-%m-%d %H:%M")


def parse_clock(value: Optional[str], default: int) -> int:
    """Parse ``HH:MM`` into minutes since midnight; ``24:00`` is end of day."""
    if not value:
        return default
    try:
        parsed = datetime.strptime(value, "%H:%M")
    except ValueError:
        if value.strip() == "24:00":
            return 24 * 60
        raise
    return parsed.hour * 60 + parsed.minute
