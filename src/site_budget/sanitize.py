"""Turn a persisted state blob into a well-typed, self-consistent State."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

from .metrics import HISTORY_DAYS
from .models import (
    Budget,
    DaySummary,
    FocusContext,
    Metrics,
    Period,
    Session,
    Site,
    SiteTotal,
    State,
)
from .normalization import is_trackable_url
from .timeutils import MINUTES_PER_DAY, day_key, normalize_window_bounds

logger = logging.getLogger(__name__)


def sanitize_state(raw: Any, now: int) -> State:
    source = raw if isinstance(raw, Mapping) else {}
    sites = sanitize_sites(source.get("sites"), now)
    session = sanitize_session(source.get("session"), now)
    if session and session.site_id not in sites:
        logger.debug("Dropping session for missing site %s", session.site_id)
        session = None
    return State(
        sites=sites,
        session=session,
        focus=sanitize_focus(source.get("focus"), now),
        metrics=sanitize_metrics(source.get("metrics"), now),
    )


def sanitize_sites(raw: Any, now: int) -> dict[str, Site]:
    if not isinstance(raw, Mapping):
        return {}
    result: dict[str, Site] = {}
    seen_domains: set[str] = set()
    for site_id, record in raw.items():
        site = sanitize_site(str(site_id), record, now)
        if site is None:
            logger.warning("Discarding malformed site record %r", site_id)
            continue
        if site.domain in seen_domains:
            logger.warning("Discarding duplicate site for %s", site.domain)
            continue
        seen_domains.add(site.domain)
        result[site.id] = site
    return result


def sanitize_site(site_id: str, raw: Any, now: int) -> Optional[Site]:
    if not isinstance(raw, Mapping):
        return None
    domain = raw.get("domain")
    if not isinstance(domain, str) or not domain.strip():
        return None

    start, end = normalize_window_bounds(
        raw.get("window_start_minutes", 0),
        raw.get("window_end_minutes", MINUTES_PER_DAY),
    )
    enabled = raw.get("enabled")
    invert = raw.get("invert_window")
    created_at = _timestamp(raw.get("created_at"))
    return Site(
        id=site_id,
        domain=domain.strip().lower(),
        period=Period.parse(raw.get("period", Period.DAILY.value)),
        budget=_budget(raw.get("limit_seconds"), raw.get("limit_minutes")),
        enabled=enabled if isinstance(enabled, bool) else True,
        window_start_minutes=start,
        window_end_minutes=end,
        invert_window=invert if isinstance(invert, bool) else False,
        usage_seconds=_count(raw.get("usage_seconds")),
        period_start=_timestamp(raw.get("period_start")),
        created_at=created_at if created_at is not None else now,
        last_updated=_timestamp(raw.get("last_updated")),
        last_blocked_at=_timestamp(raw.get("last_blocked_at")),
    )


def _budget(limit_seconds: Any, limit_minutes: Any) -> Budget:
    seconds = _number(limit_seconds)
    if seconds is not None and seconds > 0:
        minutes = _number(limit_minutes)
        if minutes == 0:
            return Budget.unlimited()
        return Budget(int(round(seconds)))
    if limit_seconds is None:
        minutes = _number(limit_minutes)
        if minutes is not None and minutes > 0:
            return Budget.from_minutes(minutes)
    return Budget.unlimited()


def sanitize_session(raw: Any, now: int) -> Optional[Session]:
    if not isinstance(raw, Mapping):
        return None
    site_id = raw.get("site_id")
    if not site_id:
        return None
    last_tick = _timestamp(raw.get("last_tick"))
    if last_tick is None:
        last_tick = now
    started_at = _timestamp(raw.get("started_at"))
    host = raw.get("host")
    return Session(
        site_id=str(site_id),
        tab_id=_identifier(raw.get("tab_id")),
        window_id=_identifier(raw.get("window_id")),
        host=host if isinstance(host, str) else "",
        started_at=started_at if started_at is not None else last_tick,
        last_tick=last_tick,
        accumulated_seconds=_count(raw.get("accumulated_seconds")),
    )


def sanitize_focus(raw: Any, now: int) -> Optional[FocusContext]:
    if not isinstance(raw, Mapping):
        return None
    tab_id = _identifier(raw.get("tab_id"))
    if tab_id is None:
        return None
    url = raw.get("url")
    if not isinstance(url, str) or not is_trackable_url(url):
        return None
    window_id = _identifier(raw.get("window_id"))
    host = raw.get("host")
    last_tick = _timestamp(raw.get("last_tick"))
    if last_tick is None:
        last_tick = now
    started_at = _timestamp(raw.get("started_at"))
    return FocusContext(
        tab_id=tab_id,
        window_id=window_id,
        url=url,
        host=host if isinstance(host, str) else "",
        started_at=started_at if started_at is not None else last_tick,
        last_tick=last_tick,
        accumulated_seconds=_count(raw.get("accumulated_seconds")),
    )


def sanitize_metrics(raw: Any, now: int) -> Metrics:
    source = raw if isinstance(raw, Mapping) else {}
    stored_key = source.get("day_key")
    metrics = Metrics(
        day_key=stored_key if isinstance(stored_key, str) and stored_key else day_key(now),
        total_seconds=_count(source.get("total_seconds")),
        tracked_seconds=_count(source.get("tracked_seconds")),
        session_count=_count(source.get("session_count")),
        total_session_seconds=_count(source.get("total_session_seconds")),
    )

    totals = source.get("site_totals")
    if isinstance(totals, Mapping):
        for site_id, value in totals.items():
            if not isinstance(value, Mapping):
                continue
            domain = value.get("domain")
            metrics.site_totals[str(site_id)] = SiteTotal(
                site_id=str(site_id),
                domain=domain if isinstance(domain, str) else str(site_id),
                seconds=_count(value.get("seconds")),
                session_count=_count(value.get("session_count")),
                total_session_seconds=_count(value.get("total_session_seconds")),
            )

    history = source.get("history")
    if isinstance(history, list):
        by_day: dict[str, DaySummary] = {}
        for entry in history:
            if not isinstance(entry, Mapping):
                continue
            key = entry.get("day_key")
            if not isinstance(key, str) or not key:
                continue
            by_day[key] = DaySummary(key, _count(entry.get("total_seconds")))
        metrics.history = sorted(by_day.values(), key=lambda item: item.day_key)[
            -HISTORY_DAYS:
        ]

    return metrics


def state_to_dict(state: State) -> dict[str, Any]:
    """Serialize a State into the JSON-compatible persisted layout."""
    return {
        "sites": {site_id: site_to_dict(site) for site_id, site in state.sites.items()},
        "session": session_to_dict(state.session),
        "focus": _focus_to_dict(state.focus),
        "metrics": _metrics_to_dict(state.metrics),
    }


def site_to_dict(site: Site) -> dict[str, Any]:
    return {
        "id": site.id,
        "domain": site.domain,
        "period": site.period.value,
        "limit_minutes": site.budget.minutes,
        "limit_seconds": site.budget.seconds,
        "enabled": site.enabled,
        "window_start_minutes": site.window_start_minutes,
        "window_end_minutes": site.window_end_minutes,
        "invert_window": site.invert_window,
        "usage_seconds": site.usage_seconds,
        "period_start": site.period_start,
        "created_at": site.created_at,
        "last_updated": site.last_updated,
        "last_blocked_at": site.last_blocked_at,
    }


def session_to_dict(session: Optional[Session]) -> Optional[dict[str, Any]]:
    if session is None:
        return None
    return {
        "site_id": session.site_id,
        "tab_id": session.tab_id,
        "window_id": session.window_id,
        "host": session.host,
        "started_at": session.started_at,
        "last_tick": session.last_tick,
        "accumulated_seconds": session.accumulated_seconds,
    }


def _focus_to_dict(focus: Optional[FocusContext]) -> Optional[dict[str, Any]]:
    if focus is None:
        return None
    return {
        "tab_id": focus.tab_id,
        "window_id": focus.window_id,
        "url": focus.url,
        "host": focus.host,
        "started_at": focus.started_at,
        "last_tick": focus.last_tick,
        "accumulated_seconds": focus.accumulated_seconds,
    }


def _metrics_to_dict(metrics: Metrics) -> dict[str, Any]:
    return {
        "day_key": metrics.day_key,
        "total_seconds": metrics.total_seconds,
        "tracked_seconds": metrics.tracked_seconds,
        "session_count": metrics.session_count,
        "total_session_seconds": metrics.total_session_seconds,
        "site_totals": {
            site_id: {
                "domain": total.domain,
                "seconds": total.seconds,
                "session_count": total.session_count,
                "total_session_seconds": total.total_session_seconds,
            }
            for site_id, total in metrics.site_totals.items()
        },
        "history": [
            {"day_key": entry.day_key, "total_seconds": entry.total_seconds}
            for entry in metrics.history
        ],
    }


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def _count(value: Any) -> int:
    numeric = _number(value)
    if numeric is None or numeric < 0:
        return 0
    return int(round(numeric))


def _timestamp(value: Any) -> Optional[int]:
    numeric = _number(value)
    return int(numeric) if numeric is not None else None


def _identifier(value: Any) -> Optional[int]:
    numeric = _number(value)
    if numeric is None:
        return None
    return int(numeric)
