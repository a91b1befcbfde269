"""Usage accrual state machine.

Every function here mutates a :class:`~site_budget.models.State` in place and
is meant to run inside :meth:`site_budget.store.StateStore.mutate`. Functions
that can detect an exhausted budget return the id of that site so the caller
can trigger enforcement once the new state has been persisted.
"""

from __future__ import annotations

import logging
from typing import Optional

from .metrics import record_focus, record_session, record_usage
from .models import FocusContext, Session, Site, State
from .normalization import extract_host, is_trackable_url
from .sites import find_site_for_host
from .timeutils import is_within_active_window, next_period_start, period_start

logger = logging.getLogger(__name__)


def delta_seconds(last_tick: Optional[int], now: int) -> int:
    """Whole seconds elapsed since ``last_tick``; clock skew counts as zero."""
    if last_tick is None:
        return 0
    return max(0, (now - last_tick) // 1000)


def ensure_period(site: Site, now: int) -> None:
    """Roll the site into the period containing ``now`` if it has moved on."""
    fresh_start = period_start(site.period.value, now)
    stored = site.period_start
    if (
        stored is None
        or stored < fresh_start
        or now >= next_period_start(site.period.value, stored)
    ):
        if stored is not None and site.usage_seconds:
            logger.info(
                "New %s period for %s; clearing %ss of usage",
                site.period.value,
                site.domain,
                site.usage_seconds,
            )
        site.period_start = fresh_start
        site.usage_seconds = 0
        site.last_blocked_at = None


def is_site_exhausted(site: Site) -> bool:
    return site.budget.is_exhausted(site.usage_seconds)


def start_focus(state: State, tab_id: int, window_id: Optional[int], url: str, host: str, now: int) -> None:
    state.focus = FocusContext(
        tab_id=tab_id,
        window_id=window_id,
        url=url,
        host=host,
        started_at=now,
        last_tick=now,
        accumulated_seconds=0,
    )


def accrue_focus(state: State, now: int, finalize: bool = False) -> None:
    """Add elapsed attention time to today's total, tracked site or not."""
    focus = state.focus
    if focus is None:
        return
    delta = delta_seconds(focus.last_tick, now)
    if delta > 0:
        focus.accumulated_seconds += delta
        record_focus(state, delta, now)
    focus.last_tick = now
    if finalize:
        state.focus = None


def accrue_session(state: State, now: int, finalize: bool = False) -> Optional[str]:
    """Charge elapsed time to the session's site and check its budget.

    Returns the site id when this step exhausted the budget.
    """
    session = state.session
    if session is None:
        return None
    site = state.sites.get(session.site_id)
    if site is None:
        state.session = None
        return None

    ensure_period(site, now)

    if not site.enabled or not is_within_active_window(site, now):
        logger.debug("Session on %s ended outside its active window", site.domain)
        _end_session(state, session, now)
        return None

    delta = delta_seconds(session.last_tick, now)
    if delta > 0:
        site.usage_seconds += delta
        site.last_updated = now
        session.accumulated_seconds += delta
        record_usage(state, site, delta, now)
    session.last_tick = now

    reached = is_site_exhausted(site)
    if reached:
        site.last_blocked_at = now
        logger.info(
            "Budget for %s reached (%ss of %ss)",
            site.domain,
            site.usage_seconds,
            site.budget.seconds,
        )

    if finalize or reached:
        _end_session(state, session, now)

    return site.id if reached else None


def _end_session(state: State, session: Session, now: int) -> None:
    if session.accumulated_seconds > 0:
        record_session(state, session, now)
    state.session = None


def end_site_session(state: State, site_id: str, now: int) -> None:
    """Flush and discard the live session if it belongs to ``site_id``."""
    if state.session is not None and state.session.site_id == site_id:
        accrue_session(state, now, finalize=True)


def finalize_active(state: State, now: int) -> Optional[str]:
    """Flush and clear both focus and session, e.g. when the browser loses focus."""
    accrue_focus(state, now, finalize=True)
    return accrue_session(state, now, finalize=True)


def close_tab(state: State, tab_id: int, now: int) -> None:
    if state.focus is not None and state.focus.tab_id == tab_id:
        accrue_focus(state, now, finalize=True)
    if state.session is not None and state.session.tab_id == tab_id:
        accrue_session(state, now, finalize=True)


def apply_attention_change(
    state: State,
    tab_id: int,
    url: Optional[str],
    window_id: Optional[int],
    now: int,
) -> Optional[str]:
    """Move attention to ``url`` in ``tab_id``.

    Returns the id of a site whose budget was exhausted, either by the
    outgoing session or because the newly attended site is already over it.
    """
    reached = finalize_active(state, now)

    if not url or not is_trackable_url(url):
        return reached
    host = extract_host(url)
    if not host:
        return reached

    start_focus(state, tab_id, window_id, url, host, now)

    site = find_site_for_host(state.sites, host)
    if site is None or not site.enabled:
        return reached

    ensure_period(site, now)
    if not is_within_active_window(site, now):
        return reached

    if is_site_exhausted(site):
        site.last_blocked_at = now
        logger.info("Attention moved to exhausted site %s", site.domain)
        return site.id

    state.session = Session(
        site_id=site.id,
        tab_id=tab_id,
        window_id=window_id,
        host=host,
        started_at=now,
        last_tick=now,
        accumulated_seconds=0,
    )
    logger.debug("Session started on %s (tab %s)", site.domain, tab_id)
    return reached
