"""Day-scoped usage totals, session statistics and the rolling history."""

from __future__ import annotations

import logging
from typing import Any

from .models import DaySummary, Metrics, Session, Site, SiteTotal, State
from .timeutils import day_key

logger = logging.getLogger(__name__)

HISTORY_DAYS = 7


def ensure_metrics(state: State, now: int) -> Metrics:
    """Return today's metrics, archiving the previous day on a date change."""
    metrics = state.metrics
    today = day_key(now)
    if metrics.day_key != today:
        archive_metrics(metrics, today)
    return metrics


def archive_metrics(metrics: Metrics, new_day_key: str) -> None:
    by_day = {entry.day_key: entry for entry in metrics.history}
    if metrics.day_key:
        by_day[metrics.day_key] = DaySummary(metrics.day_key, metrics.total_seconds)
        logger.info(
            "Archived metrics for %s (%ss attended, %ss tracked)",
            metrics.day_key,
            metrics.total_seconds,
            metrics.tracked_seconds,
        )
    metrics.history = sorted(by_day.values(), key=lambda item: item.day_key)[
        -HISTORY_DAYS:
    ]
    metrics.day_key = new_day_key
    metrics.total_seconds = 0
    metrics.tracked_seconds = 0
    metrics.session_count = 0
    metrics.total_session_seconds = 0
    metrics.site_totals = {}


def record_focus(state: State, delta_seconds: int, now: int) -> None:
    if delta_seconds <= 0:
        return
    metrics = ensure_metrics(state, now)
    metrics.total_seconds += delta_seconds


def record_usage(state: State, site: Site, delta_seconds: int, now: int) -> None:
    if delta_seconds <= 0:
        return
    metrics = ensure_metrics(state, now)
    metrics.tracked_seconds += delta_seconds
    total = _site_total(metrics, site.id, site.domain)
    total.seconds += delta_seconds
    total.domain = site.domain


def record_session(state: State, session: Session, now: int) -> None:
    """Fold a finished session into today's session statistics."""
    seconds = max(0, session.accumulated_seconds)
    if not seconds:
        return
    metrics = ensure_metrics(state, now)
    metrics.session_count += 1
    metrics.total_session_seconds += seconds

    site = state.sites.get(session.site_id)
    total = _site_total(metrics, session.site_id, site.domain if site else session.site_id)
    total.session_count += 1
    total.total_session_seconds += seconds
    if site:
        total.domain = site.domain


def rename_site_total(state: State, site: Site, now: int) -> None:
    metrics = ensure_metrics(state, now)
    total = metrics.site_totals.get(site.id)
    if total:
        total.domain = site.domain


def _site_total(metrics: Metrics, site_id: str, domain: str) -> SiteTotal:
    total = metrics.site_totals.get(site_id)
    if total is None:
        total = SiteTotal(site_id=site_id, domain=domain)
        metrics.site_totals[site_id] = total
    return total


def build_stats(metrics: Metrics) -> dict[str, Any]:
    """Summarize metrics for display: averages, ranked sites and a 7-day trend."""
    today_seconds = metrics.total_seconds
    tracked_seconds = metrics.tracked_seconds
    session_count = metrics.session_count

    ranked = sorted(metrics.site_totals.values(), key=lambda item: item.seconds, reverse=True)
    denominator = tracked_seconds or today_seconds
    top_sites = [
        {
            "rank": index,
            "site_id": total.site_id,
            "domain": total.domain,
            "seconds": total.seconds,
            "session_count": total.session_count,
            "total_session_seconds": total.total_session_seconds,
            "avg_session_seconds": _average(total.total_session_seconds, total.session_count),
            "share": total.seconds / denominator if denominator else 0.0,
        }
        for index, total in enumerate(ranked, start=1)
    ]

    trend_by_day = {entry.day_key: entry.total_seconds for entry in metrics.history}
    trend_by_day[metrics.day_key] = today_seconds
    trend = [
        {"day_key": key, "total_seconds": seconds}
        for key, seconds in sorted(trend_by_day.items())
    ][-HISTORY_DAYS:]

    return {
        "today_seconds": today_seconds,
        "tracked_seconds": tracked_seconds,
        "session_count": session_count,
        "avg_session_seconds": _average(metrics.total_session_seconds, session_count),
        "top_sites": top_sites,
        "trend": trend,
    }


def _average(total: int, count: int) -> int:
    return int(round(total / count)) if count > 0 else 0
